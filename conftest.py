# =============================================================================
# CONFTEST - Pytest Fixtures Globais
# =============================================================================
# Ambiente isolado: nenhum teste depende de .env local ou servico externo
# =============================================================================

import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

# Adicionar root ao path
sys.path.insert(0, str(Path(__file__).parent))


# =============================================================================
# FIXTURES DE AMBIENTE
# =============================================================================


@pytest.fixture(autouse=True)
def setup_test_env():
    """Configura variaveis de ambiente para testes."""
    env_vars = {
        "QUIZ_DEFAULT_TIMEZONE": "Asia/Kolkata",
        "GRADER_SERVICE_URL": "http://grader.test",
        "GRADER_TIMEOUT": "0.5",
        "LOG_LEVEL": "WARNING",
    }
    with patch.dict(os.environ, env_vars):
        yield
