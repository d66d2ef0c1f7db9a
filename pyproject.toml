[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "httpaas"
version = "0.1.0"
description = "Web dashboard that provisions VirtualBox web-server VMs and registers them in a BIND zone"
requires-python = ">=3.10"
keywords = ["virtualbox", "bind", "dns", "provisioning", "ssh", "sftp", "flask", "hosting"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "flask",
    "paramiko",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
httpaas = "httpaas.app:main"

[tool.hatch.build.targets.wheel]
packages = ["httpaas"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]
