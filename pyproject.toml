[build-system]
requires = ["setuptools>=64"]
build-backend = "setuptools.build_meta"

[project]
name = "eegacq"
version = "0.1.0"
description = "Acquisition core for EEG and biosignal devices: ring buffering, type casting, channel groups and a device plugin interface"
requires-python = ">=3.10"
dependencies = []
keywords = ["eeg", "biosignal", "acquisition", "bci", "ringbuffer", "biosemi"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["eegacq*"]

[tool.pytest.ini_options]
addopts = "-ra"
