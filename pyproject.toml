[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pegasocks"
version = "0.1.0"
description = "Building blocks for a proxy client: ciphers, ACL rules, a logging queue and trojan, vmess, shadowsocks and websocket codecs"
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = ["proxy", "socks5", "shadowsocks", "vmess", "trojan", "websocket", "acl"]
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
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Security :: Cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["pegasocks"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
