[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "enlightkit"
version = "2.0.0"
description = "Building blocks for JSON HTTP services: logging, trace propagation, JWT validation, rate limiting and time helpers."
requires-python = ">=3.10"
keywords = [
    "http",
    "wsgi",
    "middleware",
    "jwt",
    "jwk",
    "tracing",
    "b3",
    "datadog",
    "rate-limit",
    "logging",
    "uuid",
]
classifiers = [
    "Development Status :: 5 - Production/Stable",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
]
dependencies = [
    "werkzeug",
    "pyjwt",
    "cryptography",
    "redis",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["enlightkit"]

[tool.hatch.build.targets.sdist]
include = ["enlightkit", "tests", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
