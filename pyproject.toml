[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "imserver"
version = "0.1.0"
description = "Instant-messaging backend pieces: an HTTP gate for accounts and a framed TCP chat server"
requires-python = ">=3.10"
dependencies = [
    "redis",
]
keywords = ["chat", "instant messaging", "tcp", "http", "gateway", "asyncio", "redis"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: Communications :: Chat",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["imserver"]

[tool.pytest.ini_options]
addopts = "-ra"
