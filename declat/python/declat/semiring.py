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

# Weights here are costs, i.e., negated natural log probabilities,
# as used by OpenFst's log and tropical semirings.

import math

import torch

from .errors import NumericalError


def log_add(a: float, b: float) -> float:
    '''Return -log(exp(-a) + exp(-b)).'''
    m = min(a, b)
    if m == math.inf:
        return math.inf
    return m - math.log1p(math.exp(-abs(a - b)))


def log_sub(a: float, b: float) -> float:
    '''Return -log(exp(-a) - exp(-b)).

    It is defined only if `a < b`, that is the probability mass removed is
    smaller than the one we remove it from.

    Raises:
      NumericalError if `a >= b` (or one of them is NaN).
    '''
    if not a < b:
        raise NumericalError(f'Cannot subtract {b} from {a} in the log '
                             f'semiring: the result is undefined')
    if b == math.inf:
        return a
    return a - math.log1p(-math.exp(a - b))


def log_add_tensor(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    '''Elementwise version of :func:`log_add`.'''
    return -torch.logaddexp(-a, -b)


def log_sub_tensor(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    '''Elementwise version of :func:`log_sub`.

    Every element is checked before anything is computed, so either all
    results are returned or NumericalError is raised.

    Raises:
      NumericalError if `a[i] >= b[i]` for some `i`. The exception has an
      attribute `index` with the first offending position.
    '''
    bad = torch.nonzero(~(a < b))
    if bad.numel() > 0:
        i = int(bad[0, 0])
        e = NumericalError(f'Cannot subtract {float(b[i])} from '
                           f'{float(a[i])} in the log semiring '
                           f'(position {i})')
        e.index = i
        raise e
    return a - torch.log1p(-torch.exp(a - b))
