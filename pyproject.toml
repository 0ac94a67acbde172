[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bestsub"
version = "0.1.0"
description = "Fetch proxy subscriptions, parse share links, check proxies and save result files"
requires-python = ">=3.10"
keywords = ["proxy", "subscription", "clash", "mihomo", "share-link", "checker"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
]
dependencies = [
    "requests",
    "pyyaml",
    "regex",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["bestsub"]

[tool.pytest.ini_options]
addopts = "-ra"
