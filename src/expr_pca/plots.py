"""Plotly figures for a PCA run: sample scatter and explained-variance bars."""

import logging
from pathlib import Path

import numpy as np
import plotly.graph_objects as go

from .analysis import AnalysisResult, align_labels
from .colors import UNLABELLED_COLOR, class_style_map
from .pca import projected_coordinates

logger = logging.getLogger(__name__)

PLOTLY_HIGH_RES_CONFIG = {
    'toImageButtonOptions': {
        'format': 'svg',
        'filename': 'pca_plot',
        'scale': 1,
        'height': None,
        'width': None,
    },
    'displayModeBar': True,
    'displaylogo': False,
    'responsive': True,
}


def get_download_config(image_format='svg', filename='pca_plot'):
    """Get Plotly config with specified download format and filename."""
    config = PLOTLY_HIGH_RES_CONFIG.copy()
    config['toImageButtonOptions'] = config['toImageButtonOptions'].copy()
    config['toImageButtonOptions']['format'] = image_format
    config['toImageButtonOptions']['filename'] = filename
    return config


def pca_scatter(analysis: AnalysisResult, labels=None, x=0, y=1, color_map=None):
    """2D scatter of the samples on components ``x`` and ``y`` (0-indexed)."""
    coords = projected_coordinates(analysis.pca, [x, y])
    if labels is None:
        labels = analysis.labels
    x_title = analysis.axis_label(x)
    y_title = analysis.axis_label(y)
    logger.info(f"Generating PCA scatter ({x_title} vs {y_title})...")

    fig = go.Figure()
    if labels is None:
        fig.add_trace(go.Scatter(
            x=coords.iloc[:, 0],
            y=coords.iloc[:, 1],
            mode='markers',
            text=coords.index,
            marker=dict(color=UNLABELLED_COLOR, size=10),
            name='samples',
            showlegend=False,
            hovertemplate='<b>%{text}</b><extra></extra>',
        ))
    else:
        labels = np.asarray(align_labels(labels, analysis.pca.scores.index).loc[coords.index])
        styles = class_style_map(list(labels), color_map=color_map)
        for cls, (color, symbol) in styles.items():
            mask = labels == cls
            fig.add_trace(go.Scatter(
                x=coords.iloc[mask, 0],
                y=coords.iloc[mask, 1],
                mode='markers',
                text=coords.index[mask],
                name=str(cls),
                marker=dict(color=color, symbol=symbol, size=12),
                hovertemplate='<b>%{text}</b><br>' + str(cls) + '<extra></extra>',
            ))

    fig.update_layout(
        title='2D PCA plot',
        xaxis_title=x_title,
        yaxis_title=y_title,
        legend=dict(x=0.99, y=0.99, xanchor='right', yanchor='top', bgcolor='rgba(255,255,255,0.8)'),
        xaxis_title_font=dict(size=16),
        yaxis_title_font=dict(size=16),
        template='plotly_white',
        paper_bgcolor='white',
        plot_bgcolor='white',
    )
    return fig


def variance_bar(analysis: AnalysisResult, tick_step=0.05):
    """Bar chart of the explained-variance ratio of every component."""
    ratio = analysis.pca.explained_variance_ratio
    fig = go.Figure(go.Bar(
        x=list(ratio.index),
        y=ratio.values,
        marker=dict(color='#bbbbbb'),
        showlegend=False,
        hovertemplate='<b>%{x}</b><br>%{y:.2%}<extra></extra>',
    ))
    fig.update_layout(
        title='% Variance explained by principal components',
        xaxis_title='Principal Components',
        yaxis_title='% Variance Explained',
        xaxis=dict(type='category', tickangle=-90, tickfont=dict(size=10)),
        yaxis=dict(tickmode='array', tickvals=list(np.arange(0, ratio.max() + 1e-12, tick_step))),
        template='plotly_white',
        paper_bgcolor='white',
        plot_bgcolor='white',
    )
    return fig


def save_figure(fig, path):
    """Write ``fig`` as a standalone HTML file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.write_html(str(path), config=get_download_config(filename=path.stem), include_plotlyjs=True)
    logger.info(f"Saved figure: {path}")
    return path
