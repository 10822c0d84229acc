# charts.py

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from models import RiskLevel

# for chart sizes
BAR_H = 360
PIE_H = 360
RADAR_H = 360
HEAT_H = 420


def _base_fig_layout(fig, theme="light", height=360):
    """
    Shared look for every dashboard and report chart: transparent
    background, text and gridlines readable on the given theme, fixed height
    and no zooming.

    :param fig: figure to update in place
    :param theme: "light" or "dark"
    :param height: figure height in pixels
    :return: the same figure
    """
    font_color = "#f6f7fb" if theme == "dark" else "#0b1020"
    grid_color = "#334155" if theme == "dark" else "#CBD5E1"
    axis_color = font_color
    fig.update_layout(
        autosize=False,
        height=height,
        margin=dict(l=30, r=30, t=30, b=30),
        paper_bgcolor="rgba(0,0,0,0)",
        plot_bgcolor="rgba(0,0,0,0)",
        font=dict(color=font_color),
        xaxis=dict(
            showgrid=True,
            gridcolor=grid_color,
            zeroline=False,
            linecolor=axis_color,
            ticks="outside",
            fixedrange=True,
        ),
        yaxis=dict(
            showgrid=True,
            gridcolor=grid_color,
            zeroline=False,
            linecolor=axis_color,
            ticks="outside",
            fixedrange=True,
        ),
        uirevision="keep",
    )
    return fig


def domain_bar_figure(results, theme="light"):
    """
    Bar per domain, coloured by its risk tier.

    Args:
        results (list[DomainResult]): scored domains
        theme (str, optional): light or dark. Defaults to "light".

    Returns:
        go.Figure: bar figure
    """
    domains = [r.domain for r in results]
    fig = go.Figure(
        go.Bar(
            x=domains,
            y=[r.score for r in results],
            marker_color=[r.classification.color for r in results],
            text=[r.classification.label for r in results],
            hovertemplate="%{x}<br>Score: %{y}<br>%{text}<extra></extra>",
        )
    )
    fig.update_layout(
        xaxis=dict(categoryorder="array", categoryarray=domains),
        yaxis=dict(range=[0, 100], tick0=0, dtick=25),
    )
    return _base_fig_layout(fig, theme, height=BAR_H)


def distribution_pie_figure(distribution, theme="light"):
    """Donut of how many domains fall in each risk tier."""
    levels = list(distribution)
    fig = go.Figure(
        go.Pie(
            labels=[lvl.label for lvl in levels],
            values=[distribution[lvl] for lvl in levels],
            marker=dict(colors=[lvl.color for lvl in levels]),
            hole=0.55,
            sort=False,
            textinfo="label+percent",
        )
    )
    fig.update_layout(showlegend=False)
    return _base_fig_layout(fig, theme, height=PIE_H)


def radar_figure(results, theme="light"):
    if not results:
        return _base_fig_layout(go.Figure(), theme, height=RADAR_H)
    cats = [r.domain for r in results]
    vals = [r.score for r in results]
    grid_color = "#334155" if theme == "dark" else "#CBD5E1"
    fig = go.Figure(
        go.Scatterpolar(
            r=vals + [vals[0]],
            theta=cats + [cats[0]],
            fill="toself",
            name="Score",
            line=dict(width=2),
            marker=dict(size=4),
        )
    )
    fig.update_layout(
        polar=dict(
            radialaxis=dict(range=[0, 100], autorange=False, tick0=0, dtick=25, gridcolor=grid_color),
            angularaxis=dict(gridcolor=grid_color),
        ),
    )
    return _base_fig_layout(fig, theme, height=RADAR_H)


def sector_heatmap_figure(matrix, theme="light"):
    """
    Heatmap of mean corrected score per sector (rows) and domain (columns).

    An empty matrix renders a placeholder annotation instead of cells.
    """
    font_color = "#f6f7fb" if theme == "dark" else "#0b1020"
    muted = "#a9b0c4" if theme == "dark" else "#60646e"

    if matrix is None or matrix.empty:
        fig = go.Figure()
        fig.add_annotation(
            text="Sem respostas por setor",
            xref="paper",
            yref="paper",
            x=0.5,
            y=0.5,
            showarrow=False,
            font=dict(size=14, color=muted),
        )
        return _base_fig_layout(fig, theme, height=HEAT_H)

    pv = matrix.astype(float)
    z = pv.to_numpy()
    annotations = []
    for i, sector in enumerate(pv.index):
        for j, dom in enumerate(pv.columns):
            val = pv.iloc[i, j]
            if pd.notna(val):
                annotations.append(
                    dict(
                        x=dom,
                        y=sector,
                        text=f"{val:.0f}",
                        showarrow=False,
                        font=dict(size=11, color=font_color),
                    )
                )

    # Red (high risk) at 0, green (low risk) at 100.
    colorscale = [
        [0.0, RiskLevel.HIGH.color],
        [0.5, RiskLevel.MODERATE.color],
        [1.0, RiskLevel.LOW.color],
    ]
    fig = go.Figure(
        data=go.Heatmap(
            z=np.where(np.isnan(z), None, z).tolist(),
            x=list(pv.columns),
            y=list(pv.index),
            zmin=0,
            zmax=100,
            colorscale=colorscale,
            hovertemplate="Domínio: %{x}<br>Setor: %{y}<br>Score: %{z:.0f}<extra></extra>",
            xgap=1,
            ygap=1,
        )
    )
    fig.update_layout(annotations=annotations, xaxis=dict(title="", tickangle=0), yaxis=dict(title=""))
    return _base_fig_layout(fig, theme, height=HEAT_H)


def participation_figure(stats, theme="light"):
    """Horizontal bars with each sector's share of the submissions."""
    sectors = list(stats["by_sector"])
    fig = go.Figure(
        go.Bar(
            x=[stats["sector_share"][s] for s in sectors],
            y=sectors,
            orientation="h",
            text=[stats["by_sector"][s] for s in sectors],
            hovertemplate="%{y}: %{x}% (%{text} respostas)<extra></extra>",
            marker_color="#f97316",
        )
    )
    fig.update_layout(xaxis=dict(range=[0, 100], ticksuffix="%"))
    return _base_fig_layout(fig, theme, height=max(200, 60 + 40 * len(sectors)))
