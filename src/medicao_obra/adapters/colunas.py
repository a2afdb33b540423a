# src/medicao_obra/adapters/colunas.py
from __future__ import annotations

import re
from typing import Iterable

from ..models import MapeamentoColunas
from ..utils.utils_text import norm_header

# ---------- Mapeamento de colunas ----------
#
# A ordem dos campos desempata: campos mais específicos vêm antes
# ("valor unitário" e "valor verificado" antes de "valor", "qtd solicitada"
# antes de "qtd"). Uma coluna é atribuída a no máximo um campo.

_COL_KEYWORDS: dict[str, tuple[str, ...]] = {
    "valor_unit":       ("valor unitario", "valor unit", "vlr unit", "preco unitario", "preco unit",
                         "p.u.", "p.u", "pu"),
    "qtd_solicitada":   ("qtd solicitada", "quantidade solicitada", "solicitado"),
    "qtd_verificada":   ("qtd verificada", "quantidade verificada", "verificado", "acumulado"),
    "valor_solicitado": ("valor solicitado", "valor contratado", "valores contratuais", "contratado"),
    "valor_verificado": ("valor verificado", "verificado r$", "valor executado"),
    "quantidade":       ("quantidade", "qtde", "qtd", "qty", "quant", "medido"),
    "valor_total":      ("valor total", "total", "valor", "preco", "custo", "price", "value"),
    "item":             ("codigo", "cod.", "item", "id", "nº", "num", "linha"),
    "data":             ("data", "date", "periodo", "mes"),
    "descricao":        ("descricao", "servico", "atividade"),
    "disciplina":       ("disciplina", "grupo", "tipo"),
    "responsavel":      ("responsavel", "executor", "executado", "contratada", "quem"),
    "local":            ("localizacao", "local", "trecho", "estaca", "km"),
    "unidade":          ("unidade", "unid", "un.", "un"),
    "classificacao":    ("classificacao", "class", "qualidade", "obra", "saldo"),
    "medicao":          ("numero medicao", "medicao n", "medicao", "med"),
}

CAMPOS = tuple(_COL_KEYWORDS)

# palavras-chave curtas só casam como "palavra" inteira (evita "un" em "unitário")
_SHORT = 3

_EXATO, _PREFIXO, _CONTEM = 3, 2, 1


def _norm(s: object) -> str:
    return norm_header(s).replace("_", " ")


def _qualidade(header_norm: str, keyword: str) -> int:
    """3 = cabeçalho idêntico, 2 = começa pela palavra-chave, 1 = contém, 0 = não casa."""
    kw = _norm(keyword)
    if not kw:
        return 0
    if header_norm == kw:
        return _EXATO
    if len(kw.rstrip(".")) <= _SHORT:
        m = re.search(rf"(?<![a-z0-9]){re.escape(kw)}(?![a-z0-9])", header_norm)
        pos = -1 if m is None else m.start()
    else:
        pos = header_norm.find(kw)
    if pos < 0:
        return 0
    return _PREFIXO if pos == 0 else _CONTEM


def mapear_colunas(colunas: Iterable[object]) -> MapeamentoColunas:
    """
    Mapeia colunas da planilha para os campos canônicos por palavras-chave
    (pt/en, sem acento, case-insensitive). Campos sem coluna ficam None.

    Casamentos melhores ganham primeiro: cabeçalho idêntico à palavra-chave,
    depois cabeçalho que começa por ela, depois cabeçalho que só a contém.
    Assim "Descrição do Item" fica com a descrição, e não com o item.
    """
    cols = [(i, str(c), _norm(c)) for i, c in enumerate(colunas) if _norm(c)]

    candidatos = []
    for rank_campo, (campo, keywords) in enumerate(_COL_KEYWORDS.items()):
        for rank_kw, kw in enumerate(keywords):
            for i, nome, norm in cols:
                q = _qualidade(norm, kw)
                if q:
                    candidatos.append((-q, rank_campo, rank_kw, i, campo, nome))
    candidatos.sort()

    usados: set[int] = set()
    out: MapeamentoColunas = {campo: None for campo in CAMPOS}
    for _, _, _, i, campo, nome in candidatos:
        if out[campo] is None and i not in usados:
            out[campo] = nome
            usados.add(i)

    return out


def indice_coluna(colunas: list[object], nome: str | None) -> int | None:
    if nome is None:
        return None
    for i, c in enumerate(colunas):
        if str(c) == nome:
            return i
    return None
