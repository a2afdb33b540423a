# src/medicao_obra/cli.py
from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional

import typer

from medicao_obra.adapters.medicao import ler_tabela, load_medicao
from medicao_obra.adapters.tpu import ler_texto, load_tpu, parse_tpu_texto
from medicao_obra.config import LIMIARES_PADRAO, POLITICAS_PRECO, Limiares
from medicao_obra.exporters.excel import export_comparacao_excel, export_medicoes_excel
from medicao_obra.exporters.json_resultados import (
    export_analise_json,
    export_comparacao_json,
    export_validacao_json,
)
from medicao_obra.models import ResultadoComparacao, TPUImportResult
from medicao_obra.processor import comparar_medicoes, comparar_tpu, formatar_variacao
from medicao_obra.validators.alertas import (
    calcular_estatisticas,
    estatisticas_por_disciplina,
    gerar_alertas,
)
from medicao_obra.validators.calculo import validar_calculos
from medicao_obra.validators.planilha import analisar_planilha

app = typer.Typer(no_args_is_help=True, add_completion=False, help="""
Medição de obra: validação de boletins e comparação entre períodos (TPU e medições), com saída em JSON.
""")

_ERROS_LEITURA = (KeyError, RuntimeError, ValueError, FileNotFoundError)


@app.callback()
def _configurar(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log detalhado (DEBUG)."),
):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )


# -----------------------------------------
# Helpers
# -----------------------------------------
def _falha(prefixo: str, e: Exception) -> typer.Exit:
    # KeyError põe aspas na mensagem; usa o argumento cru
    msg = e.args[0] if e.args else str(e)
    typer.secho(f"[{prefixo}] Falhou: {msg}", err=True, fg=typer.colors.RED)
    return typer.Exit(code=1)


def _limiares(
    tolerancia: Optional[float] = None,
    limiar_estavel: Optional[float] = None,
    sigma: Optional[float] = None,
) -> Limiares:
    campos = {
        "tolerancia_calculo_pct": tolerancia,
        "limiar_estavel_pct": limiar_estavel,
        "sigma_outlier": sigma,
    }
    return replace(LIMIARES_PADRAO, **{k: v for k, v in campos.items() if v is not None})


def _header_row(linha_cabecalho: Optional[int]) -> Optional[int]:
    if linha_cabecalho is None:
        return None
    if linha_cabecalho < 1:
        raise typer.BadParameter("linha-cabecalho começa em 1.")
    return linha_cabecalho - 1


def _resumo_comparacao(res: ResultadoComparacao) -> None:
    r = res["resumo"]
    typer.echo(
        f"   novos={r['itens_novos']}  removidos={r['itens_removidos']}  "
        f"aumentaram={r['itens_aumentaram']}  diminuíram={r['itens_diminuiram']}  "
        f"estáveis={r['itens_estaveis']}"
    )
    typer.echo(f"   variação total: {formatar_variacao(r['variacao_total_geral'])}")


def _carregar_tpu(path: Path, origem: str) -> TPUImportResult:
    if path.suffix.lower() == ".txt":
        res = parse_tpu_texto(ler_texto(str(path)), origem=origem)
        if not res["entries"]:
            raise RuntimeError(f"Nenhum item de TPU encontrado no texto {path.name}.")
        return res
    return load_tpu(str(path), origem=origem)


# =====================================================================
# VALIDAÇÃO
# =====================================================================

@app.command("validar")
def validar(
    planilha: Path = typer.Option(..., exists=True, readable=True, help="Planilha de medição (.xlsx)."),
    aba: Optional[str] = typer.Option(None, help="Nome da aba (padrão: primeira)."),
    linha_cabecalho: Optional[int] = typer.Option(None, help="Linha do cabeçalho (1 = primeira). Padrão: detectar."),
    tolerancia: Optional[float] = typer.Option(None, help="Tolerância do erro de cálculo em % (padrão 0.01)."),
    sigma: Optional[float] = typer.Option(None, help="Outlier: média + sigma × desvio (padrão 3)."),
    out: Path = typer.Option(Path("output/validacao.json"), help="JSON de saída."),
    excel: Optional[Path] = typer.Option(None, help="Também gera um Excel com as linhas validadas."),
    historico: Optional[Path] = typer.Option(
        None, exists=True, readable=True, help="Planilha de medições anteriores (contexto do valor médio).",
    ),
):
    """
    Valida uma planilha de medição: erros de cálculo (quantidade × valor
    unitário ≠ total) e quantidades atípicas no lote.
    """
    limiares = _limiares(tolerancia=tolerancia, sigma=sigma)
    header_row = _header_row(linha_cabecalho)

    typer.secho(">> Lendo MEDIÇÃO…", fg=typer.colors.CYAN)
    try:
        entries = load_medicao(str(planilha), aba, header_row=header_row, limiares=limiares)
    except _ERROS_LEITURA as e:
        raise _falha("MEDIÇÃO", e)

    anteriores = None
    if historico is not None:
        typer.secho(">> Lendo HISTÓRICO…", fg=typer.colors.CYAN)
        try:
            anteriores = load_medicao(str(historico), limiares=limiares)
        except _ERROS_LEITURA as e:
            raise _falha("HISTÓRICO", e)

    typer.secho(">> Validando cálculos e outliers…", fg=typer.colors.CYAN)
    linhas = validar_calculos(entries, limiares)
    alertas = gerar_alertas(entries, limiares)
    estatisticas = dict(calcular_estatisticas(entries, limiares, historico=anteriores))
    estatisticas["por_disciplina"] = estatisticas_por_disciplina(entries, limiares)

    meta = {
        "planilha": str(planilha),
        "aba": aba,
        "historico": str(historico) if historico else None,
        "tolerancia_calculo_pct": limiares.tolerancia_calculo_pct,
        "sigma_outlier": limiares.sigma_outlier,
    }
    export_validacao_json(linhas, alertas, estatisticas, out, meta=meta)

    if excel is not None:
        export_medicoes_excel(linhas, excel, incluir_validacao=True)
        typer.secho(f">> Excel salvo em {excel}", fg=typer.colors.GREEN)

    cor = typer.colors.YELLOW if alertas else typer.colors.GREEN
    typer.secho(
        f">> OK! JSON salvo em {out} (linhas={len(linhas)}, erros={estatisticas['qtd_erros']}, "
        f"outliers={estatisticas['qtd_outliers']})",
        fg=cor,
    )


@app.command("analisar-planilha")
def analisar(
    planilha: Path = typer.Option(..., exists=True, readable=True, help="Planilha (.xlsx)."),
    aba: Optional[str] = typer.Option(None, help="Nome da aba (padrão: primeira)."),
    linha_cabecalho: Optional[int] = typer.Option(None, help="Linha do cabeçalho (1 = primeira). Padrão: detectar."),
    tolerancia: Optional[float] = typer.Option(None, help="Tolerância do erro de cálculo em %."),
    sigma: Optional[float] = typer.Option(None, help="Valores inconsistentes: média + sigma × desvio."),
    out: Path = typer.Option(Path("output/analise_planilha.json"), help="JSON de saída."),
):
    """
    Análise célula a célula: campos vazios, duplicatas na 1ª coluna, erros
    de cálculo e valores fora do padrão.
    """
    limiares = _limiares(tolerancia=tolerancia, sigma=sigma)

    typer.secho(">> Lendo PLANILHA…", fg=typer.colors.CYAN)
    try:
        cabecalhos, linhas = ler_tabela(str(planilha), aba, header_row=_header_row(linha_cabecalho))
    except _ERROS_LEITURA as e:
        raise _falha("PLANILHA", e)

    typer.secho(">> Analisando células…", fg=typer.colors.CYAN)
    analise = analisar_planilha(cabecalhos, linhas, limiares)
    export_analise_json(analise, out, meta={"planilha": str(planilha), "aba": aba})

    r = analise["resumo"]
    typer.echo(
        f"   cálculo={r['erros_calculo']}  inconsistentes={r['valores_inconsistentes']}  "
        f"duplicatas={r['duplicatas']}  faltantes={r['dados_faltantes']}"
    )
    typer.secho(f">> OK! JSON salvo em {out} (apontamentos={r['total_erros']})", fg=typer.colors.GREEN)


# =====================================================================
# COMPARAÇÃO ENTRE PERÍODOS
# =====================================================================

@app.command("comparar-tpu")
def cmd_comparar_tpu(
    base: Path = typer.Option(..., exists=True, readable=True, help="TPU base (.xlsx ou .txt extraído do PDF)."),
    comparacao: Path = typer.Option(..., exists=True, readable=True, help="TPU de comparação (.xlsx ou .txt)."),
    nome_base: Optional[str] = typer.Option(None, help="Rótulo da base (padrão: nome do arquivo)."),
    nome_comparacao: Optional[str] = typer.Option(None, help="Rótulo da comparação (padrão: nome do arquivo)."),
    origem: str = typer.Option("DER-SP", help="Tabela de origem (DER-SP, DNIT, SINAPI, Outro)."),
    limiar_estavel: Optional[float] = typer.Option(None, help="|variação| até este % = estável (padrão 0.5)."),
    out: Path = typer.Option(Path("output/comparacao_tpu.json"), help="JSON de saída."),
    excel: Optional[Path] = typer.Option(None, help="Também gera um Excel (abas itens/resumo)."),
):
    """
    Compara duas TPUs por código: status pela variação do preço unitário.
    """
    limiares = _limiares(limiar_estavel=limiar_estavel)

    typer.secho(">> Lendo TPUs…", fg=typer.colors.CYAN)
    try:
        tpu_b = _carregar_tpu(base, origem)
        tpu_c = _carregar_tpu(comparacao, origem)
    except _ERROS_LEITURA as e:
        raise _falha("TPU", e)

    if tpu_b["regime"] != tpu_c["regime"]:
        typer.secho(
            f"[TPU] Atenção: regimes diferentes ({tpu_b['regime']} x {tpu_c['regime']}).",
            err=True, fg=typer.colors.YELLOW,
        )

    typer.secho(">> Comparando TPUs…", fg=typer.colors.CYAN)
    res = comparar_tpu(
        tpu_b["entries"], tpu_c["entries"],
        nome_base or base.stem, nome_comparacao or comparacao.stem,
        limiares=limiares,
    )

    meta = {
        "base": str(base),
        "comparacao": str(comparacao),
        "origem": origem,
        "data_referencia_base": tpu_b["data_referencia"],
        "data_referencia_comparacao": tpu_c["data_referencia"],
        "limiar_estavel_pct": limiares.limiar_estavel_pct,
    }
    export_comparacao_json(res, out, meta=meta)
    if excel is not None:
        export_comparacao_excel(res, excel)
        typer.secho(f">> Excel salvo em {excel}", fg=typer.colors.GREEN)

    _resumo_comparacao(res)
    typer.secho(f">> OK! JSON salvo em {out} (itens={len(res['items'])})", fg=typer.colors.GREEN)


@app.command("comparar-medicoes")
def cmd_comparar_medicoes(
    base: Path = typer.Option(..., exists=True, readable=True, help="Planilha do período base."),
    comparacao: Path = typer.Option(..., exists=True, readable=True, help="Planilha do período de comparação."),
    aba_base: Optional[str] = typer.Option(None, help="Aba da planilha base (padrão: primeira)."),
    aba_comparacao: Optional[str] = typer.Option(None, help="Aba da planilha de comparação (padrão: primeira)."),
    nome_base: Optional[str] = typer.Option(None, help="Rótulo da base (padrão: nome do arquivo)."),
    nome_comparacao: Optional[str] = typer.Option(None, help="Rótulo da comparação (padrão: nome do arquivo)."),
    politica_preco: str = typer.Option(
        "primeiro", help="Preço unitário de itens repetidos: primeiro | ultimo | media_ponderada."
    ),
    limiar_estavel: Optional[float] = typer.Option(None, help="|variação| até este % = estável (padrão 0.5)."),
    out: Path = typer.Option(Path("output/comparacao_medicoes.json"), help="JSON de saída."),
    excel: Optional[Path] = typer.Option(None, help="Também gera um Excel (abas itens/resumo)."),
):
    """
    Compara dois períodos de medição por item: linhas repetidas são somadas,
    status pela variação de quantidade.
    """
    politica = politica_preco.strip().lower()
    if politica not in POLITICAS_PRECO:
        raise typer.BadParameter(f"politica-preco não suportada. Use: {', '.join(POLITICAS_PRECO)}")
    limiares = _limiares(limiar_estavel=limiar_estavel)

    typer.secho(">> Lendo MEDIÇÕES…", fg=typer.colors.CYAN)
    try:
        med_b = load_medicao(str(base), aba_base, limiares=limiares)
        med_c = load_medicao(str(comparacao), aba_comparacao, limiares=limiares)
    except _ERROS_LEITURA as e:
        raise _falha("MEDIÇÃO", e)

    typer.secho(">> Comparando períodos…", fg=typer.colors.CYAN)
    res = comparar_medicoes(
        med_b, med_c,
        nome_base or base.stem, nome_comparacao or comparacao.stem,
        limiares=limiares, politica_preco=politica,  # type: ignore[arg-type]
    )

    meta = {
        "base": str(base),
        "comparacao": str(comparacao),
        "aba_base": aba_base,
        "aba_comparacao": aba_comparacao,
        "politica_preco": politica,
        "limiar_estavel_pct": limiares.limiar_estavel_pct,
    }
    export_comparacao_json(res, out, meta=meta)
    if excel is not None:
        export_comparacao_excel(res, excel)
        typer.secho(f">> Excel salvo em {excel}", fg=typer.colors.GREEN)

    _resumo_comparacao(res)
    typer.secho(f">> OK! JSON salvo em {out} (itens={len(res['items'])})", fg=typer.colors.GREEN)


def main() -> None:
    app(prog_name="medicao")


if __name__ == "__main__":
    main()
