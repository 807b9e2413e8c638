"""File-based templates -- the most common real-world pattern.

Loads templates from disk, demonstrates template inheritance
(extends/section/yield/parent), stacks, includes, @each and a template
namespace for mail templates.

Run:
    python app.py
"""

import tempfile
from pathlib import Path

from sickle import Compiler, Environment

base_dir = Path(__file__).parent
env = Environment(
    base_dir / "views",
    tempfile.mkdtemp(prefix="sickle-layouts-"),
    namespaces={"mail": base_dir / "mail"},
)

site = {
    "site_name": "My Site",
    "nav_items": [
        {"url": "/", "label": "Home"},
        {"url": "/about", "label": "About"},
    ],
}

home_output = env.make(
    "pages/home",
    {
        **site,
        "title": "Welcome",
        "message": "This is a sickle-powered site with template inheritance.",
        "posts": [{"title": "First post"}, {"title": "Second post"}],
    },
)

empty_home_output = env.make(
    "pages/home",
    {**site, "title": "Welcome", "message": "Nothing here yet.", "posts": []},
)

about_output = env.make(
    "pages/about",
    {**site, "description": "Built with sickle, a directive template compiler."},
)

welcome_output = env.make("mail::welcome", {**site, "user": "Ann"})

# Every template the home page was built from; a change to any of them
# invalidates its cache entry.
home_dependencies = Compiler(env.loader).compile("pages/home").dependencies


def main() -> None:
    print("=== Home Page ===")
    print(home_output)
    print("=== About Page ===")
    print(about_output)
    print("=== Welcome Mail ===")
    print(welcome_output)
    print("Home page dependencies:", ", ".join(home_dependencies))


if __name__ == "__main__":
    main()
