import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from netcore.errors import ShapeMismatchError
from netcore.tensor import Matrix


class DataHandler:
    """
    Utility class for data loading, preprocessing, and generation.
    Everything returned is a netcore Matrix, one sample per row.
    """

    @staticmethod
    def load_data(filepath, target_columns, header=0):
        """
        Loads a CSV or Excel file and splits it into features and targets.
        Args:
            filepath: Path to a .csv, .xls or .xlsx file.
            target_columns: Column label(s) (or positions when header is None) of the targets.
            header: Row number to use as header (None for no header).
        Returns:
            (X, y) Matrices.
        """
        if str(filepath).lower().endswith(('.xls', '.xlsx')):
            df = pd.read_excel(filepath, header=header)
        else:
            df = pd.read_csv(filepath, header=header)

        if not isinstance(target_columns, (list, tuple)):
            target_columns = [target_columns]
        targets = df[list(target_columns)]
        features = df.drop(columns=list(target_columns))
        return (Matrix.from_array(features.to_numpy(dtype=np.float64)),
                Matrix.from_array(targets.to_numpy(dtype=np.float64)))

    @staticmethod
    def normalize_data(data):
        """
        Min-Max Normalization to [0, 1], per column.
        Returns:
            normalized_data: scaled Matrix.
            scaler_params: (min_vals, max_vals) for denormalization.
        """
        min_vals = np.min(data.data, axis=0)
        max_vals = np.max(data.data, axis=0)
        span = max_vals - min_vals
        # Constant columns are left untouched to avoid division by zero
        safe_span = np.where(span == 0, 1.0, span)
        shift = np.where(span == 0, 0.0, min_vals)
        return Matrix.from_array((data.data - shift) / safe_span), (min_vals, max_vals)

    @staticmethod
    def denormalize_data(data, scaler_params):
        """Reverts data to original scale."""
        min_vals, max_vals = scaler_params
        span = max_vals - min_vals
        safe_span = np.where(span == 0, 1.0, span)
        shift = np.where(span == 0, 0.0, min_vals)
        return Matrix.from_array(data.data * safe_span + shift)

    @staticmethod
    def one_hot(labels, num_classes=None):
        """
        Converts integer class labels into a one-hot Matrix (N, num_classes).
        """
        labels = np.asarray(labels, dtype=np.int64).ravel()
        if num_classes is None:
            num_classes = int(labels.max()) + 1 if labels.size else 0
        if labels.size and (labels.min() < 0 or labels.max() >= num_classes):
            raise ValueError(f"labels must lie in [0, {num_classes})")
        encoded = Matrix(labels.size, num_classes)
        encoded.data[np.arange(labels.size), labels] = 1.0
        return encoded

    @staticmethod
    def train_test_split(X, y, train_ratio=0.7, shuffle=False):
        """
        Splits data into training and testing sets.
        Row order is kept unless shuffle is True.
        """
        if X.rows != y.rows:
            raise ShapeMismatchError(f"X has {X.rows} samples but y has {y.rows}")
        num_samples = X.rows
        indices = np.arange(num_samples)

        if shuffle:
            np.random.shuffle(indices)

        x_data, y_data = X.data[indices], y.data[indices]
        train_size = int(num_samples * train_ratio)

        return (Matrix.from_array(x_data[:train_size]), Matrix.from_array(x_data[train_size:]),
                Matrix.from_array(y_data[:train_size]), Matrix.from_array(y_data[train_size:]))

    # --- Synthetic Datasets ---

    @staticmethod
    def generate_xor():
        """
        The four XOR samples.
        Returns:
            X: (4, 2) inputs
            y: (4, 1) labels
        """
        X = Matrix.from_array([[0, 0], [0, 1], [1, 0], [1, 1]])
        y = Matrix.from_array([[0], [1], [1], [0]])
        return X, y

    @staticmethod
    def generate_clusters(num_classes=3, samples_per_class=10):
        """
        One square cluster per class: class c is spread uniformly over
        [c, c + 0.5) on both axes. Labels are one-hot.
        """
        X, labels = [], []
        for c in range(num_classes):
            X.append(c + np.random.rand(samples_per_class, 2) * 0.5)
            labels.extend([c] * samples_per_class)

        X = np.vstack(X) if X else np.zeros((0, 2))
        return Matrix.from_array(X), DataHandler.one_hot(labels, num_classes)

    @staticmethod
    def generate_linear(num_samples=100, slope=2.0, intercept=1.0, noise=0.5):
        """
        Noisy line y = slope * x + intercept + N(0, noise), x uniform in [0, 10).
        """
        x = np.random.rand(num_samples, 1) * 10
        y = slope * x + intercept + np.random.randn(num_samples, 1) * noise
        return Matrix.from_array(x), Matrix.from_array(y)

    # --- Visualization ---

    @staticmethod
    def plot_history(history, title="Training History", save_path=None):
        """
        Plots the train (and validation, if any) loss curves of Sequential.fit.
        Saves the figure when save_path is given, otherwise shows it.
        Returns the matplotlib Figure.
        """
        fig, ax = plt.subplots(figsize=(8, 5))
        ax.plot(range(1, len(history['loss']) + 1), history['loss'], label='Train Loss')
        if history.get('val_loss'):
            ax.plot(range(1, len(history['val_loss']) + 1), history['val_loss'], label='Val Loss')
        ax.set_xlabel('Epoch')
        ax.set_ylabel('Loss')
        ax.set_title(title)
        ax.grid(True, alpha=0.3)
        ax.legend()

        if save_path is not None:
            fig.savefig(save_path)
        else:
            plt.show()
        return fig
