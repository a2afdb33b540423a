# src/medicao_obra/adapters/tpu.py
from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from ..models import Regime, TPUEntry, TPUImportResult
from ..utils.utils_num import smart_to_float
from ..utils.utils_text import is_blank, norm_header

logger = logging.getLogger(__name__)

# ----------------- helpers -----------------

_MAX_SCAN_ROWS = 15

# códigos TPU: "21.01.01", "21.01.01.99" ...
_CODE_START_RE = re.compile(r"^\d{2}\.\d{2}\.\d{2}")
_CODE_RE = re.compile(r"^\d{2}\.\d{2}")
_DATE_RE = re.compile(r"(\d{2}/\d{2}/\d{4})|(\d{2}/\d{4})")
_VERSION_RE = re.compile(r"vers[aã]o?:?\s*([a-z0-9]+)", re.IGNORECASE)

# linha de texto (PDF extraído): CODIGO  NOME  UNIDADE  PRECO
_LINE_RE = re.compile(
    r"^(\d{2}\.\d{2}\.\d{2}(?:\.\d{2})?(?:\.\d{2})?)\s+(.+?)\s+(\w+(?:\*?\w*)?)\s+([\d.,]+)$"
)
_LINE_CODE_RE = re.compile(r"^(\d{2}\.\d{2}\.\d{2}(?:\.\d{2})?(?:\.\d{2})?)\s+(.+)")
_TAIL_PRICE_RE = re.compile(r"([\d.,]+)$")
_TAIL_UNIT_RE = re.compile(r"\s+(\w{1,10})\s+[\d.,]+$")


class _Cabecalho:
    """Metadados lidos no topo da tabela (regime, data-base, versão)."""

    def __init__(self) -> None:
        self.regime: Regime = "nao_desonerado"
        self.data_referencia = ""
        self.versao = ""

    def ler(self, texto: str) -> None:
        t = texto.lower()
        n = norm_header(texto)
        if "nao desonerado" in n:
            self.regime = "nao_desonerado"
        elif "desonerado" in n:
            self.regime = "desonerado"

        m = _DATE_RE.search(t)
        if m:
            self.data_referencia = m.group(0)

        if "versao" in n:
            mv = _VERSION_RE.search(t)
            if mv:
                self.versao = mv.group(1)


def parse_preco(s) -> float:
    """'1.234,56' / '1234.56' / 1234.56 -> float; inválido -> 0.0"""
    if isinstance(s, str):
        s = re.sub(r"\s", "", s)
    v = smart_to_float(s)
    return 0.0 if v is None else v


def _entry(codigo: str, nome: str, unidade: str, preco: float, origem: str, cab: _Cabecalho) -> TPUEntry:
    item: TPUEntry = {
        "id": f"tpu-{codigo}",
        "codigo": codigo,
        "nome": nome,
        "unidade": unidade,
        "preco_unit": preco,
        "origem": origem,
        "regime": cab.regime,
    }
    if cab.data_referencia:
        item["data_referencia"] = cab.data_referencia
    if cab.versao:
        item["versao"] = cab.versao
    return item


def _resultado(entries: List[TPUEntry], origem: str, cab: _Cabecalho) -> TPUImportResult:
    return TPUImportResult(
        entries=entries,
        total_itens=len(entries),
        origem=origem,
        data_referencia=cab.data_referencia,
        regime=cab.regime,
    )


def _cell(row: Sequence, j: int) -> str:
    if j >= len(row) or is_blank(row[j]):
        return ""
    return str(row[j]).strip()


# ----------------- parsers -----------------

def parse_tpu_linhas(rows: Iterable[Sequence], origem: str = "DER-SP") -> TPUImportResult:
    """
    Lê linhas já extraídas de uma planilha TPU (colunas: código, nome,
    unidade, preço). O topo (15 linhas) é varrido para regime/data/versão;
    os dados começam no primeiro código "NN.NN.NN".
    """
    rows = [list(r) if r is not None else [] for r in rows]
    cab = _Cabecalho()
    for r in rows[:_MAX_SCAN_ROWS]:
        cab.ler(" ".join(str(v) for v in r if not is_blank(v)))

    inicio = next((i for i, r in enumerate(rows) if _CODE_START_RE.match(_cell(r, 0))), len(rows))

    entries: List[TPUEntry] = []
    for r in rows[inicio:]:
        if len(r) < 3:
            continue
        codigo = _cell(r, 0)
        nome = _cell(r, 1)
        if not _CODE_RE.match(codigo) or len(nome) < 3:
            continue
        preco = parse_preco(r[3] if len(r) > 3 else None)
        entries.append(_entry(codigo, nome, _cell(r, 2), preco, origem, cab))

    logger.info("TPU %s: %d item(ns) (regime=%s, data-base=%r).",
                origem, len(entries), cab.regime, cab.data_referencia)
    return _resultado(entries, origem, cab)


def parse_tpu_texto(texto: str, origem: str = "DER-SP") -> TPUImportResult:
    """
    Lê a TPU a partir de texto extraído (ex.: PDF), uma linha por item:
    CODIGO NOME UNIDADE PRECO. Linhas quebradas são aproveitadas quando
    trazem código no início e preço no fim.
    """
    linhas = texto.split("\n")
    cab = _Cabecalho()
    cab.ler(" ".join(linhas[:20]))

    entries: List[TPUEntry] = []
    for linha in linhas:
        linha = linha.strip()
        if not linha:
            continue

        m = _LINE_RE.match(linha)
        if m:
            codigo, nome, unidade, preco = m.groups()
            entries.append(_entry(codigo.strip(), nome.strip(), unidade.strip(), parse_preco(preco), origem, cab))
            continue

        alt = _LINE_CODE_RE.match(linha)
        if not alt:
            continue
        codigo, resto = alt.groups()
        mp = _TAIL_PRICE_RE.search(resto)
        if not mp:
            continue
        mu = _TAIL_UNIT_RE.search(resto)
        unidade = mu.group(1) if mu else "un"
        nome = (resto.replace(mu.group(0), "") if mu else resto.replace(mp.group(0), "")).strip()
        if len(nome) > 2:
            entries.append(_entry(codigo.strip(), nome, unidade.strip(), parse_preco(mp.group(1)), origem, cab))

    logger.info("TPU %s (texto): %d item(ns).", origem, len(entries))
    return _resultado(entries, origem, cab)


# ----------------- loader principal -----------------

def load_tpu(path: str, sheet: str | int = 0, origem: str = "DER-SP") -> TPUImportResult:
    """
    Lê uma TPU em Excel (primeira aba por padrão) e retorna TPUImportResult.
    Códigos repetidos são mantidos na lista; na comparação o último vence.
    """
    df_raw = pd.read_excel(path, sheet_name=sheet, header=None)
    res = parse_tpu_linhas(df_raw.itertuples(index=False, name=None), origem=origem)
    if not res["entries"]:
        raise RuntimeError(f"[{sheet}] Nenhum item de TPU encontrado (códigos no formato NN.NN.NN).")

    vistos: set[str] = set()
    dup = 0
    for e in res["entries"]:
        if e["codigo"] in vistos:
            dup += 1
        vistos.add(e["codigo"])
    if dup:
        logger.warning("TPU %s: %d código(s) duplicado(s); na comparação vale o último.", origem, dup)

    return res


def ler_texto(path: str, encoding: Optional[str] = "utf-8") -> str:
    with open(path, "r", encoding=encoding) as f:
        return f.read()
