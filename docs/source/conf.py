"""Sphinx configuration for the wtlars documentation."""

import importlib.metadata

_metadata = importlib.metadata.metadata("wtlars")
project = _metadata["Name"]
release = _metadata["Version"]
author = "wtlars developers"
copyright = f"2026, {author}"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "sphinx.ext.intersphinx",
    "sphinx.ext.mathjax",
    "myst_parser",
]

html_theme = "furo"

# docstrings are numpydoc
napoleon_google_docstring = False
napoleon_numpy_docstring = True

# index.md writes the Kronecker dictionary as $...$
myst_enable_extensions = ["dollarmath"]

autodoc_default_options = {"members": True, "show-inheritance": True}
# optional extras: the accelerated path and the stats frame
autodoc_mock_imports = ["cupy", "pandas"]

intersphinx_mapping = {
    "python": ("https://docs.python.org/3/", None),
    "numpy": ("https://numpy.org/doc/stable/", None),
    "scipy": ("https://docs.scipy.org/doc/scipy/", None),
}
