#!/usr/bin/env python3

# Copyright      2026  The declat authors
#
# See ../../../../LICENSE for clarification regarding multiple authors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import os
import platform
import sys
from typing import Tuple

import torch

__version__ = '0.1.0'

# Replaced by setup.py with the commit the package is built from.
__git_sha1__ = '0000000000000000000000000000000000000000'


def version_info() -> Tuple[int, int, int]:
    '''Return (major, minor, patch).'''
    major, minor, patch = __version__.split('.')[:3]
    return int(major), int(minor), int(patch)


def git_revision() -> str:
    '''Return the git SHA1 of the source the package was built from.

    It can be overridden with the environment variable DECLAT_GIT_SHA1.
    '''
    ans = os.getenv('DECLAT_GIT_SHA1', __git_sha1__)
    assert len(ans) == 40, f'Git SHA has length 40. Given: {ans}'
    return ans


def main():
    '''Collect the information about the environment declat is used in.

    When reporting issues, please use::

        python3 -m declat.version

    to collect the environment information about declat.
    '''
    print('Collecting environment information...')
    major, minor, patch = version_info()

    print(f'''
declat version: {major}.{minor}.{patch}
Git SHA1: {git_revision()}
Python version: {platform.python_version()}
OS: {platform.platform()}
PyTorch version: {torch.__version__}
Byte order: {sys.byteorder}
    ''')


if __name__ == '__main__':
    main()
