"""
Module for visualizing forest results.
"""

import os
from typing import List, Optional

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from decision_forest.config import IMPACT_REPORT_SIZE


class Visualizer:
    """Class for creating visualizations of forest results."""

    def __init__(self, output_dir: str = 'figures'):
        """
        Initialize the Visualizer.

        Args:
            output_dir: Directory to save figures.
        """
        self.output_dir = output_dir
        os.makedirs(output_dir, exist_ok=True)

        sns.set(style='whitegrid')
        plt.rcParams['figure.figsize'] = (12, 8)

    def save_figure(self, fig: plt.Figure, filename: str) -> str:
        """
        Save a figure to disk.

        Args:
            fig: Figure to save.
            filename: Filename for the saved figure.

        Returns:
            Path to saved figure.
        """
        if not filename.endswith(('.png', '.jpg', '.pdf')):
            filename += '.png'
        filepath = os.path.join(self.output_dir, filename)
        fig.savefig(filepath, bbox_inches='tight', dpi=300)
        plt.close(fig)
        return filepath

    def plot_feature_impact(
        self,
        ranking: pd.DataFrame,
        top_n: int = IMPACT_REPORT_SIZE,
        title: str = 'Feature Impact',
        filename: Optional[str] = None
    ) -> plt.Figure:
        """
        Plot the most impactful input columns.

        Args:
            ranking: DataFrame with columns col_name and info_gain.
            top_n: Number of top features to show.
            title: Plot title.
            filename: Optional filename to save the figure.

        Returns:
            Figure object.
        """
        top = ranking.sort_values('info_gain', ascending=False, kind='mergesort').head(top_n)

        fig, ax = plt.subplots(figsize=(12, 8))
        sns.barplot(x='info_gain', y='col_name', data=top, ax=ax)
        ax.set_title(f'Top {len(top)} {title}', fontsize=16)
        ax.set_xlabel('Mean Information Gain', fontsize=14)
        ax.set_ylabel('Feature', fontsize=14)
        plt.tight_layout()

        if filename:
            self.save_figure(fig, filename)
        return fig

    def plot_confusion_matrix(
        self,
        cm: np.ndarray,
        class_names: List[str],
        model_name: str,
        filename: Optional[str] = None
    ) -> plt.Figure:
        """
        Plot confusion matrix.

        Args:
            cm: Confusion matrix (true rows, predicted columns).
            class_names: Names of classes.
            model_name: Name of the model.
            filename: Optional filename to save the figure.

        Returns:
            Figure object.
        """
        fig, ax = plt.subplots(figsize=(10, 8))
        sns.heatmap(
            cm,
            annot=True,
            fmt='d',
            cmap='Blues',
            xticklabels=class_names,
            yticklabels=class_names,
            ax=ax
        )
        ax.set_title(f'Confusion Matrix - {model_name}', fontsize=16)
        ax.set_xlabel('Predicted', fontsize=14)
        ax.set_ylabel('True', fontsize=14)
        plt.tight_layout()

        if filename:
            self.save_figure(fig, filename)
        return fig
