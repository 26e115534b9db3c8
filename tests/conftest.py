import pytest

from haccp.registers.models import CompanyInfo

from fakes import FakeStore, signature_png


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def company():
    return CompanyInfo(name="Trattoria Da Mario", piva="01234567890", address="Via Roma 1")


@pytest.fixture
def osa_png():
    return signature_png()
