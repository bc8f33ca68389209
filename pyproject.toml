[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gpuplugin"
version = "0.16.0"
description = "GPU resource management for a cluster device plugin: device maps, replication, allocation, health settings and vGPU discovery"
requires-python = ">=3.10"
dependencies = []
keywords = ["gpu", "device-plugin", "mig", "vgpu", "time-slicing", "mps", "allocation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["gpuplugin"]

[tool.pytest.ini_options]
addopts = "-ra"
