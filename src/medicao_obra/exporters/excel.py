# src/medicao_obra/exporters/excel.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pandas as pd
from openpyxl.utils import get_column_letter

from ..models import LinhaValidada, MedicaoEntry, ResultadoComparacao
from ..processor import rotulo_status

_COLS_ITENS = [
    "codigo", "descricao", "unidade",
    "valor_base", "valor_comparacao", "diferenca_valor", "variacao_preco",
    "quantidade_base", "quantidade_comparacao", "diferenca_quantidade", "variacao_quantidade",
    "total_base", "total_comparacao", "variacao_total",
    "status",
]
_MOEDA = ("valor_base", "valor_comparacao", "diferenca_valor", "total_base", "total_comparacao",
          "Valor Unitário", "Valor Total", "Valor Calculado", "Diferença")
_PERCENT = ("variacao_preco", "variacao_quantidade", "variacao_total")

_CABECALHOS_MEDICAO = {
    "item": "Item",
    "data": "Data",
    "responsavel": "Responsável",
    "local": "Local",
    "disciplina": "Disciplina",
    "descricao": "Descrição",
    "quantidade": "Quantidade",
    "unidade": "Unidade",
    "valor_unit": "Valor Unitário",
    "valor_total": "Valor Total",
    "status": "Status",
}


def _autofit_columns(ws) -> None:
    """Ajusta largura das colunas com base no conteúdo (openpyxl worksheet)."""
    for i, col in enumerate(ws.columns, start=1):
        max_len = 0
        for cell in col:
            val = cell.value
            val_str = str(val) if val is not None else ""
            if len(val_str) > max_len:
                max_len = len(val_str)
        ws.column_dimensions[get_column_letter(i)].width = min(max_len + 2, 80)


def _formatar(ws, formatos: Dict[str, str]) -> None:
    """Aplica number_format por nome de cabeçalho (linha 1)."""
    headers = [c.value for c in next(ws.iter_rows(min_row=1, max_row=1))]
    idx = {h: i for i, h in enumerate(headers)}
    alvos = [(idx[h], fmt) for h, fmt in formatos.items() if h in idx]
    for r in ws.iter_rows(min_row=2):
        for i, fmt in alvos:
            r[i].number_format = fmt


def export_comparacao_excel(
    resultado: ResultadoComparacao,
    path: str | Path,
    *,
    number_format_currency: str = '#,##0.00',
    number_format_percent: str = '+0.00"%";-0.00"%"',
) -> Path:
    """
    Gera um Excel com:
      - aba 'itens' (todos os itens alinhados, na ordem do resultado)
      - aba 'resumo' (contagens por status, totais e maiores variações)

    As variações já estão em pontos percentuais (10.0 = 10%), por isso o
    formato percentual é literal e não o '0.00%' do Excel.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df_itens = pd.DataFrame(resultado["items"], columns=_COLS_ITENS)
    df_itens["status"] = df_itens["status"].map(rotulo_status)

    r = resultado["resumo"]
    maior_aum = r["maior_aumento"]
    maior_red = r["maior_reducao"]
    linhas_resumo = [
        ("Tipo", resultado["tipo"]),
        ("Base", resultado["nome_base"]),
        ("Comparação", resultado["nome_comparacao"]),
        ("Itens na base", r["total_itens_base"]),
        ("Itens na comparação", r["total_itens_comparacao"]),
        ("Novos", r["itens_novos"]),
        ("Removidos", r["itens_removidos"]),
        ("Aumentaram", r["itens_aumentaram"]),
        ("Diminuíram", r["itens_diminuiram"]),
        ("Estáveis", r["itens_estaveis"]),
        ("Valor total base", r["valor_total_base"]),
        ("Valor total comparação", r["valor_total_comparacao"]),
        ("Variação total (%)", r["variacao_total_geral"]),
        ("Maior aumento", maior_aum["codigo"] if maior_aum else "-"),
        ("Maior redução", maior_red["codigo"] if maior_red else "-"),
    ]
    df_resumo = pd.DataFrame(linhas_resumo, columns=["indicador", "valor"])

    with pd.ExcelWriter(path, engine="openpyxl") as xlw:
        df_itens.to_excel(xlw, sheet_name="itens", index=False)
        df_resumo.to_excel(xlw, sheet_name="resumo", index=False)

        wb = xlw.book
        ws_i = wb["itens"]
        _autofit_columns(ws_i)
        formatos = {c: number_format_currency for c in _MOEDA}
        formatos.update({c: number_format_percent for c in _PERCENT})
        _formatar(ws_i, formatos)

        _autofit_columns(wb["resumo"])

    return path


def export_medicoes_excel(
    entries: Iterable[MedicaoEntry] | Iterable[LinhaValidada],
    path: str | Path,
    *,
    incluir_validacao: bool = False,
    number_format_currency: str = '#,##0.00',
) -> Path:
    """
    Exporta as medições para a aba 'Medições' com cabeçalhos em português.
    Com `incluir_validacao=True` (linhas vindas de `validar_calculos`), inclui
    valor calculado, diferença e a marcação de erro.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    rows: List[dict] = []
    for e in entries:
        row = {rot: e.get(campo, "") for campo, rot in _CABECALHOS_MEDICAO.items()}
        if incluir_validacao:
            row["Valor Calculado"] = e.get("valor_calculado")
            row["Diferença"] = e.get("diferenca")
            row["Diferença (%)"] = e.get("diferenca_pct")
            row["Erro de Cálculo"] = "SIM" if e.get("erro_calculo") else ""
        rows.append(row)

    columns: Optional[List[str]] = None if rows else list(_CABECALHOS_MEDICAO.values())
    df = pd.DataFrame(rows, columns=columns)

    with pd.ExcelWriter(path, engine="openpyxl") as xlw:
        df.to_excel(xlw, sheet_name="Medições", index=False)
        ws = xlw.book["Medições"]
        _autofit_columns(ws)
        _formatar(ws, {c: number_format_currency for c in _MOEDA})

    return path
