import os
import textwrap

import django
import pytest

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "account_core_api.settings")
django.setup()

from account_core_api import services  # noqa: E402

PASSWD = textwrap.dedent("""\
    root:x:0:0:root:/root:/bin/bash
    daemon:x:1:1:daemon:/usr/sbin:/usr/sbin/nologin
    alice:x:1000:1000:Alice Liddell,,,:/home/alice:/bin/bash
    bob:x:1001:1001::/home/bob:/bin/sh
""")

GROUP = textwrap.dedent("""\
    root:x:0:
    sudo:x:27:alice
    docker:x:998:alice,bob
    alice:x:1000:
    bob:x:1001:
""")


@pytest.fixture(autouse=True)
def _reset_services():
    services.reset()
    yield
    services.reset()


@pytest.fixture
def passwd_files(tmp_path):
    passwd = tmp_path / "passwd"
    group = tmp_path / "group"
    passwd.write_text(PASSWD)
    group.write_text(GROUP)
    return str(passwd), str(group)


@pytest.fixture
def os_release(tmp_path):
    def _write(content):
        path = tmp_path / "os-release"
        path.write_text(textwrap.dedent(content))
        return str(path)
    return _write
