[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "realtalk"
version = "0.1.0"
description = "Console client for realtime voice conversations with a Realtime-API-compatible WebSocket server"
requires-python = ">=3.10"
keywords = ["realtime", "speech", "websocket", "pcm16", "voice", "transcription"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Sound/Audio :: Speech",
]
dependencies = [
    "websocket-client",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
realtalk = "realtalk.app:main"

[tool.hatch.build.targets.wheel]
packages = ["realtalk"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
