[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deepseek-client"
version = "0.1.0"
description = "Request building, response parsing, JSON extraction, token estimation, image messages and Ollama chat helpers for DeepSeek-compatible chat APIs."
requires-python = ">=3.10"
dependencies = [
    "python-dotenv",
]
keywords = ["deepseek", "llm", "chat", "completion", "ollama", "api-client"]
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
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["deepseek_client"]

[tool.pytest.ini_options]
addopts = "-ra"
