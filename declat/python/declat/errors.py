# Copyright      2026  The declat authors
#
# See ../../../LICENSE for clarification regarding multiple authors
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

# Failures to open or read a file are reported with the built-in IOError.


class FormatError(ValueError):
    '''Serialized data is malformed or uses something we do not support,
    e.g., a bad FST header, an unknown FST type, an unexpected arc type,
    a word id missing from a symbol table or a bad integer list.
    '''
    pass


class InvariantError(ValueError):
    '''A precondition of the caller was violated; raised before any work
    is done.
    '''
    pass


class NumericalError(ArithmeticError):
    '''A log-domain subtraction has no defined result.'''
    pass
