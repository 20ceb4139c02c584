#!/usr/bin/env python3

import os
import re
import subprocess

_VERSION_FILE = 'declat/python/declat/version/version.py'


def get_package_version():
    with open(_VERSION_FILE) as f:
        content = f.read()

    return re.search(r"__version__ = '(.*)'", content).group(1)


def get_git_sha1():
    # e.g., for builds from a source tarball without .git
    ans = os.environ.get('DECLAT_GIT_SHA1', None)
    if ans is not None:
        return ans
    try:
        ans = subprocess.check_output(['git', 'rev-parse', 'HEAD'],
                                      stderr=subprocess.DEVNULL,
                                      cwd=os.path.dirname(
                                          os.path.abspath(__file__)))
    except (OSError, subprocess.CalledProcessError):
        return '0' * 40
    return ans.decode().strip()


if __name__ == '__main__':
    print(get_package_version())
    print(get_git_sha1())
