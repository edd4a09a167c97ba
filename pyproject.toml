[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "krewkit"
version = "0.1.0"
description = "Read, validate, download and unpack kubectl plugin manifests and archives from a plugin index"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["kubectl", "kubernetes", "plugins", "plugin-index", "manifest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Software Distribution",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
validate-krew-manifest = "krewkit.validate_manifest:main"
generate-plugin-overview = "krewkit.overview:main"

[tool.hatch.build.targets.wheel]
packages = ["krewkit"]

[tool.hatch.build.targets.sdist]
include = ["krewkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
