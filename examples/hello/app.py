"""Hello World -- the simplest sickle example.

Render a template from a string, then the same markup from a file in the
views directory. Compiled templates go to a temporary cache directory.

Run:
    python app.py
"""

import tempfile
from pathlib import Path

from sickle import Environment

views_dir = Path(__file__).parent / "views"
env = Environment(views_dir, tempfile.mkdtemp(prefix="sickle-hello-"))

# Render from a string (never cached)
output = env.render_string("Hello, {{ name }}!", {"name": "World"})

# Render from views/greeting.sickle.html (compiled once, then cached)
file_output = env.make("greeting", {"name": "<World>"})


def main() -> None:
    print(output)
    print(file_output)
    print()

    # Multiple renders with different data
    for name in ["Sickle", "Blade", "Python"]:
        print(env.render_string("Hello, {{ name }}!", {"name": name}))


if __name__ == "__main__":
    main()
