# src/medicao_obra/adapters/medicao.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import pandas as pd

from ..config import Limiares, LIMIARES_PADRAO
from ..models import MapeamentoColunas, MedicaoEntry
from ..utils.utils_num import format_date, smart_to_float, to_float
from ..utils.utils_text import is_blank, norm_code, norm_header
from ..validators.outliers import marcar_outliers
from .colunas import mapear_colunas

logger = logging.getLogger(__name__)

# ---------- Heurísticas de detecção ----------

_MAX_SCAN_ROWS = 15
_MAX_SCAN_COLS = 10

# layouts conhecidos: palavras-chave no topo da planilha -> linha do cabeçalho
_LAYOUTS = {
    "boletim_medicao": (
        "Boletim de Medição Financeira", 11,
        ("boletim de medicao", "periodo de medicao", "contratada:", "pep:", "itens contratuais"),
    ),
    "memoria_calculo": (
        "Memória de Cálculo", 3,
        ("memoria de calculo", "descricao da atividade", "valor verificado"),
    ),
    "analise": (
        "Análise de Medição", 5,
        ("analise medicao", "analise de medicao", "controle de medicao"),
    ),
}

_HEADER_KEYWORDS = ("descricao", "item", "qtde", "valor", "un", "unidade", "id")
_HEADER_LIKE = ("item", "descricao", "codigo")


@dataclass
class TipoPlanilha:
    tipo: str
    nome: str
    linha_cabecalho: int
    confianca: float


def _find_header_row(df_raw: pd.DataFrame, max_scan: int = _MAX_SCAN_ROWS) -> int | None:
    """Primeira linha com pelo menos 2 células que lembram cabeçalho."""
    for i in range(min(max_scan, len(df_raw))):
        row = df_raw.iloc[i, :max_scan + 1].map(norm_header)
        hits = sum(1 for cell in row if cell and any(k in cell for k in _HEADER_KEYWORDS))
        if hits >= 2:
            return i
    return None


def detectar_tipo_planilha(df_raw: pd.DataFrame) -> TipoPlanilha:
    """
    Identifica o layout pela presença de palavras-chave nas primeiras
    15 linhas x 10 colunas; se nenhum layout conhecido bater, procura a
    linha de cabeçalho (ou assume a linha 0).
    """
    topo = df_raw.iloc[:_MAX_SCAN_ROWS + 1, :_MAX_SCAN_COLS + 1]
    texto = " ".join(norm_header(v) for v in topo.to_numpy().ravel() if not is_blank(v))

    for tipo, (nome, linha, keywords) in _LAYOUTS.items():
        achados = [k for k in keywords if k in texto]
        if achados:
            return TipoPlanilha(tipo, nome, linha, len(achados) / len(keywords))

    header_row = _find_header_row(df_raw)
    if header_row is None:
        logger.warning("Cabeçalho não detectado; usando a linha 0.")
        header_row = 0
    return TipoPlanilha("desconhecido", "Planilha Genérica", header_row, 0.5)


def _frame_com_cabecalho(df_raw: pd.DataFrame, header_row: int) -> pd.DataFrame:
    headers = []
    for j, h in enumerate(df_raw.iloc[header_row].tolist()):
        headers.append(f"Col_{j + 1}" if is_blank(h) else str(h).strip())
    df = df_raw.iloc[header_row + 1:].copy()
    df.columns = headers
    return df.reset_index(drop=True)


# ---------- Conversão de linhas ----------

def _get(row: pd.Series, col: Optional[str]):
    if col is None or col not in row.index:
        return None
    v = row[col]
    # colunas com nome repetido devolvem Series; fica com a primeira
    if isinstance(v, pd.Series):
        v = v.iloc[0]
    return None if is_blank(v) else v


def _texto(v, default: str) -> str:
    return default if v is None else (str(v).strip() or default)


def coluna_quantidade(mapeamento: MapeamentoColunas) -> Optional[str]:
    """Quantidade medida; sem ela, a solicitada e depois a verificada."""
    return mapeamento.get("quantidade") or mapeamento.get("qtd_solicitada") or mapeamento.get("qtd_verificada")


def coluna_valor(mapeamento: MapeamentoColunas) -> Optional[str]:
    """Valor total; sem ele, o verificado e depois o solicitado."""
    return mapeamento.get("valor_total") or mapeamento.get("valor_verificado") or mapeamento.get("valor_solicitado")


def _complementares(row: pd.Series, mapeamento: MapeamentoColunas) -> dict:
    # campos de boletim/memória entram só quando preenchidos (zero conta como vazio)
    out: dict = {}
    for campo in ("qtd_solicitada", "valor_solicitado", "qtd_verificada", "valor_verificado"):
        v = smart_to_float(_get(row, mapeamento.get(campo)))
        if v:
            out[campo] = v
    classificacao = _get(row, mapeamento.get("classificacao"))
    if classificacao is not None and str(classificacao).strip():
        out["classificacao"] = str(classificacao).strip()
    numero = smart_to_float(_get(row, mapeamento.get("medicao")))
    if numero is not None and int(numero) > 0:
        out["medicao"] = int(numero)
    return out


def linhas_para_medicoes(
    df: pd.DataFrame,
    mapeamento: MapeamentoColunas,
    limiares: Limiares = LIMIARES_PADRAO,
    *,
    prefixo_id: str = "med",
) -> List[MedicaoEntry]:
    """
    Converte as linhas de um DataFrame (já com cabeçalho) em MedicaoEntry.

    - Pula linhas vazias (sem descrição e sem quantidade/valor) e linhas que
      repetem o cabeçalho.
    - Sem coluna de quantidade/valor, usa as colunas de solicitado/verificado.
    - Valor total ausente -> quantidade × valor unitário.
    - Marca outliers de quantidade no lote (média + 3σ).
    """
    if df.empty:
        return []

    primeira_col = df.columns[0]
    # sem coluna de item, a 1ª coluna serve de código se não for outro campo
    primeira_col_livre = str(primeira_col) not in {c for c in mapeamento.values() if c}
    col_qtd = coluna_quantidade(mapeamento)
    col_valor = coluna_valor(mapeamento)
    out: List[MedicaoEntry] = []
    puladas = 0

    for idx, row in df.iterrows():
        primeiro = _get(row, primeira_col)
        descricao = _get(row, mapeamento.get("descricao"))
        quantidade = to_float(_get(row, col_qtd))
        valor_unit = to_float(_get(row, mapeamento.get("valor_unit")))
        total_raw = smart_to_float(_get(row, col_valor))

        tem_desc = descricao is not None and str(descricao).strip() != ""
        tem_valor = quantidade > 0 or (total_raw is not None and total_raw > 0)
        parece_cabecalho = isinstance(primeiro, str) and any(h in norm_header(primeiro) for h in _HEADER_LIKE)

        if (not tem_desc and not tem_valor) or parece_cabecalho:
            puladas += 1
            continue

        valor_total = total_raw if total_raw else quantidade * valor_unit
        disciplina = _get(row, mapeamento.get("disciplina"))
        item = _get(row, mapeamento.get("item"))
        if item is None and primeira_col_livre:
            item = primeiro

        entry: MedicaoEntry = {
            "id": f"{prefixo_id}-{int(idx) + 1}",
            "item": norm_code(item),
            "data": format_date(_get(row, mapeamento.get("data"))),
            "responsavel": _texto(_get(row, mapeamento.get("responsavel")), "Não informado"),
            "local": _texto(_get(row, mapeamento.get("local")), "Não informado"),
            "disciplina": _texto(disciplina, "Geral"),
            "descricao": _texto(descricao, "Sem descrição"),
            "quantidade": quantidade,
            "unidade": _texto(_get(row, mapeamento.get("unidade")), "UN"),
            "valor_unit": valor_unit,
            "valor_total": float(valor_total),
            "status": "normal",
            "tipo": _texto(disciplina, ""),
        }
        entry.update(_complementares(row, mapeamento))
        out.append(entry)

    if puladas:
        logger.info("%d linha(s) vazia(s) ou de cabeçalho descartada(s).", puladas)

    return marcar_outliers(out, limiares)


# ---------- Loader principal ----------

def listar_abas(path: str) -> list[str]:
    with pd.ExcelFile(path) as xls:
        return [str(s) for s in xls.sheet_names]


def _ler_aba(path: str, sheet: str | int | None) -> tuple[str | int, pd.DataFrame]:
    with pd.ExcelFile(path) as xls:
        if sheet is None:
            sheet = xls.sheet_names[0]
        elif isinstance(sheet, str) and sheet not in xls.sheet_names:
            raise ValueError(f"Aba {sheet!r} não encontrada. Abas disponíveis: {xls.sheet_names}")
        df_raw = pd.read_excel(xls, sheet_name=sheet, header=None)

    if df_raw.empty:
        raise RuntimeError(f"[{sheet}] Aba vazia.")
    return sheet, df_raw


def _linha_cabecalho(df_raw: pd.DataFrame, sheet: str | int, header_row: int | None) -> int:
    if header_row is None:
        tipo = detectar_tipo_planilha(df_raw)
        header_row = tipo.linha_cabecalho
        logger.info(f"[{sheet}] Layout detectado: {tipo.nome} (cabeçalho na linha {header_row + 1}).")

    if header_row >= len(df_raw):
        raise RuntimeError(f"[{sheet}] Linha de cabeçalho {header_row + 1} além do fim da aba ({len(df_raw)} linhas).")
    return header_row


def ler_tabela(
    path: str,
    sheet: str | int | None = None,
    *,
    header_row: int | None = None,
) -> tuple[list, list[list]]:
    """
    Lê a aba como (cabeçalhos, linhas) crus, para a análise célula a célula.
    Células vazias chegam como None.
    """
    sheet, df_raw = _ler_aba(path, sheet)
    header_row = _linha_cabecalho(df_raw, sheet, header_row)

    df_raw = df_raw.astype(object).where(df_raw.notna(), None)
    cabecalhos = df_raw.iloc[header_row].tolist()
    linhas = [list(r) for r in df_raw.iloc[header_row + 1:].itertuples(index=False, name=None)]
    return cabecalhos, linhas


def load_medicao(
    path: str,
    sheet: str | int | None = None,
    *,
    header_row: int | None = None,
    limiares: Limiares = LIMIARES_PADRAO,
) -> List[MedicaoEntry]:
    """
    Lê uma planilha de medição e retorna a lista de MedicaoEntry.

    - Usa a primeira aba por padrão (sheet=None).
    - Detecta o layout/cabeçalho automaticamente, a menos que `header_row` seja dado.
    - Mapeia colunas por palavras-chave (ver `colunas.mapear_colunas`).
    """
    sheet, df_raw = _ler_aba(path, sheet)
    header_row = _linha_cabecalho(df_raw, sheet, header_row)

    df = _frame_com_cabecalho(df_raw, header_row)
    mapeamento = mapear_colunas(df.columns)
    logger.info(f"[{sheet}] Mapeamento de colunas: {mapeamento}")

    if coluna_quantidade(mapeamento) is None and coluna_valor(mapeamento) is None:
        raise KeyError(f"[{sheet}] Não encontrei coluna de quantidade nem de valor. Colunas disponíveis: {list(df.columns)}")
    if mapeamento["descricao"] is None:
        logger.warning(f"[{sheet}] Coluna de descrição não encontrada; usando 'Sem descrição'.")

    entries = linhas_para_medicoes(df, mapeamento, limiares, prefixo_id=str(sheet))
    if not entries:
        raise RuntimeError(f"[{sheet}] Nenhuma linha de medição válida encontrada.")

    logger.info(f"[{sheet}] {len(entries)} linha(s) de medição carregada(s).")
    return entries
