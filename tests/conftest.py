"""
conftest.py: fixtures compartilhadas.

Testes unitários puros sobre listas em memória; os testes de adapters/CLI
escrevem planilhas pequenas com openpyxl em `tmp_path`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Sequence

import pytest
from openpyxl import Workbook


def _medicao(
    id: str = "m1",
    *,
    item: str = "",
    descricao: str = "Escavação",
    quantidade: float = 10.0,
    valor_unit: float = 50.0,
    valor_total: float | None = None,
    disciplina: str = "Terraplenagem",
    data: str = "2024-01-15",
    status: str = "normal",
) -> dict:
    return {
        "id": id,
        "item": item,
        "data": data,
        "responsavel": "Não informado",
        "local": "Não informado",
        "disciplina": disciplina,
        "descricao": descricao,
        "quantidade": quantidade,
        "unidade": "m3",
        "valor_unit": valor_unit,
        "valor_total": quantidade * valor_unit if valor_total is None else valor_total,
        "status": status,
    }


def _tpu(codigo: str, preco: float, nome: str | None = None) -> dict:
    return {
        "id": f"tpu-{codigo}",
        "codigo": codigo,
        "nome": nome or f"Serviço {codigo}",
        "unidade": "un",
        "preco_unit": preco,
        "origem": "DER-SP",
        "regime": "nao_desonerado",
    }


@pytest.fixture
def medicao() -> Callable[..., dict]:
    """Fábrica de MedicaoEntry (valor_total = q × pu, salvo se informado)."""
    return _medicao


@pytest.fixture
def tpu() -> Callable[..., dict]:
    """Fábrica de TPUEntry."""
    return _tpu


@pytest.fixture
def escrever_xlsx(tmp_path: Path) -> Callable[..., Path]:
    """Escreve `linhas` numa planilha nova e devolve o caminho."""

    def _escrever(nome: str, linhas: Sequence[Sequence], aba: str = "Medicao") -> Path:
        wb = Workbook()
        ws = wb.active
        ws.title = aba
        for linha in linhas:
            ws.append(list(linha))
        path = tmp_path / nome
        wb.save(path)
        return path

    return _escrever


@pytest.fixture
def cabecalho_medicao() -> list[str]:
    return [
        "Item", "Descrição", "Quantidade", "Unidade",
        "Valor Unitário", "Valor Total", "Disciplina", "Data",
    ]
