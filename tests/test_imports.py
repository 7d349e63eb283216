# test_imports.py
import relay_metering
from relay_metering import core, sdk


def test_package_imports():
    assert relay_metering.__version__ == "0.1.0"


def test_public_names_exported():
    for name in core.__all__:
        assert hasattr(core, name), name
    assert sdk.UsageMeter is not None


def test_cli_app_imports():
    from relay_metering.cli.main import app
    assert app is not None
