#!/usr/bin/env python3
#
# To install declat, run
#
#       pip install .
#
# To test that declat is installed successfully, run
#
#       python3 -m declat.version
#
# To run the tests, run
#
#       pip install -e ".[test]"
#       pytest declat/python/tests
#
# To uninstall declat, run
#
#       pip uninstall declat

import sys

import setuptools

import get_version

get_package_version = get_version.get_package_version
get_git_sha1 = get_version.get_git_sha1

if sys.version_info < (3, 8):
    print("Python 3.7 has reached end-of-life and is no longer supported by "
          "declat.")
    sys.exit(-1)


def get_long_description():
    with open("README.md", "r") as f:
        long_description = f.read()
        return long_description


def get_short_description():
    return ("Utilities for the lattices of a speech recognition decoder: "
            "reading OpenFst graphs and moving posteriors onto arcs")


version_file = "declat/python/declat/version/version.py"

with open(version_file, "r") as f:
    original_version_file = f.read()

with open(version_file, "w") as f:
    f.write(original_version_file.replace(
        "__git_sha1__ = '" + "0" * 40 + "'",
        f"__git_sha1__ = '{get_git_sha1()}'"))

dev_requirements = [
    "flake8==3.8.3",
    "yapf==0.27.0",
]

test_requirements = [
    "pytest",
]

install_requires = [
    "torch",
    "graphviz",
]

try:
    setuptools.setup(
        python_requires=">=3.8",
        name="declat",
        version=get_package_version(),
        author="The declat authors",
        keywords="lattice, FST, OpenFst, Kaldi, posterior",
        description=get_short_description(),
        long_description=get_long_description(),
        long_description_content_type="text/markdown",
        package_dir={
            "declat": "declat/python/declat",
            "declat.version": "declat/python/declat/version",
        },
        packages=["declat", "declat.version"],
        install_requires=install_requires,
        extras_require={"dev": dev_requirements, "test": test_requirements},
        zip_safe=False,
        classifiers=[
            "Development Status :: 3 - Alpha",
            "Programming Language :: Python :: 3",
            "Programming Language :: Python :: Implementation :: CPython",
            "Topic :: Scientific/Engineering :: Artificial Intelligence",
        ],
    )
finally:
    # restore the placeholder SHA1 in version.py
    with open(version_file, "w") as f:
        f.write(original_version_file)
