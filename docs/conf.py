"""Sphinx configuration for adiabatic-me documentation."""

project = "adiabatic-me"
copyright = "2024, adiabatic-me developers"
author = "adiabatic-me developers"
release = "0.1.0"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.viewcode",
    "myst_parser",  # Enable markdown support
]

# Markdown configuration
myst_enable_extensions = [
    "colon_fence",
    "deflist",
]
source_suffix = {
    ".rst": "restructuredtext",
    ".md": "markdown",
}

napoleon_numpy_docstring = True
autodoc_member_order = "bysource"

templates_path = ["_templates"]
exclude_patterns = ["_build"]

html_theme = "sphinx_rtd_theme"
