# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import pytest

from restwire.http.state import reset_default_state


@pytest.fixture(autouse=True)
def _clean_default_state():
    reset_default_state()
    yield
    reset_default_state()
