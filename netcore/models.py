import time
from tqdm import tqdm  # For progress bars
from netcore.base import Layer, ParamKey
from netcore.errors import LayerError, ShapeMismatchError


class Sequential:
    """
    Main Model Class.
    Manages the stack of layers, forward/backward passes, and the training loop.

    One training step:
        forward -> loss.forward -> loss.backward -> backward (reverse order)
        -> optimizer.update for every parameter of every trainable layer.

    Optimizer state is keyed by ParamKey(layer_index, param_name), so the
    layer order must not change once training has started.
    """
    def __init__(self, layers=None):
        self.layers = []
        for layer in layers or []:
            self.add(layer)
        self.loss_fn = None
        self.optimizer = None
        # Initialize history to track both training and validation loss
        self.history = {'loss': [], 'val_loss': []}

    def add(self, layer):
        """Adds a layer to the stack."""
        if not isinstance(layer, Layer):
            raise TypeError("Object must inherit from netcore.base.Layer")
        self.layers.append(layer)

    def compile(self, loss, optimizer):
        """
        Configures the model for training.
        Args:
            loss: Instance of netcore.base.Loss
            optimizer: Instance of netcore.base.Optimizer (Adam or SGD)
        """
        self.loss_fn = loss
        self.optimizer = optimizer

    def _check_compiled(self):
        if self.loss_fn is None or self.optimizer is None:
            raise RuntimeError("You must call .compile() before training or evaluating")

    def forward(self, x):
        """
        Passes input x through all layers sequentially.
        Errors are re-raised as LayerError carrying the failing layer index.
        """
        out = x
        for i, layer in enumerate(self.layers):
            try:
                out = layer.forward(out)
            except Exception as err:
                raise LayerError(i, "forward", err) from err
        return out

    def backward(self, loss_grad):
        """
        Passes gradient backward through all layers.
        Each layer caches its own parameter gradients on the way.
        """
        grad = loss_grad
        # Iterate backwards
        for i in range(len(self.layers) - 1, -1, -1):
            try:
                grad = self.layers[i].backward(grad)
            except Exception as err:
                raise LayerError(i, "backward", err) from err
        return grad

    def update_weights(self):
        """
        Hands every cached gradient to the optimizer and copies the returned
        values into the live parameters. No rollback: if one update fails,
        the layers before it stay updated.
        """
        self.optimizer.begin_step()
        for i, layer in enumerate(self.layers):
            if not layer.trainable:
                continue
            for name, param, grad in zip(layer.get_param_names(), layer.get_params(), layer.get_grads()):
                updated = self.optimizer.update(ParamKey(i, name), param, grad)
                param.assign(updated)

    def train_on_batch(self, X, y):
        """
        Runs one full training step and returns the batch loss.
        """
        self._check_compiled()

        # 1. Forward
        y_pred = self.forward(X)

        # 2. Compute Loss
        loss_val = self.loss_fn.forward(y_pred, y)

        # 3. Backward & Update
        grad_loss = self.loss_fn.backward(y_pred, y)
        self.backward(grad_loss)
        self.update_weights()

        return loss_val

    def fit(self, X, y, epochs=100, batch_size=32, verbose=True, validation_data=None, log_freq=1):
        """
        Main Training Loop.

        Args:
            X, y: Training data as Matrices, one sample per row.
            epochs: Number of passes over the data.
            batch_size: Rows per batch. Batches are contiguous and the last
                        one may be shorter.
            verbose: Print logs and show a progress bar.
            validation_data: Tuple (X_val, y_val) or None.
            log_freq: Frequency of printing logs (e.g., 5 means print every 5th epoch).

        Returns:
            history dict. 'loss' holds the per-epoch mean of the batch losses
            (each batch weighs the same, including a short last one).
        """
        self._check_compiled()
        if X.rows != y.rows:
            raise ShapeMismatchError(f"X has {X.rows} samples but y has {y.rows}")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if epochs < 0:
            raise ValueError("epochs must be >= 0")

        n_samples = X.rows
        has_val = validation_data is not None
        batch_starts = list(range(0, n_samples, batch_size))

        if verbose:
            print(f"Starting Training | Optimizer: {type(self.optimizer).__name__} "
                  f"| Epochs: {epochs} | Samples: {n_samples}")
            if has_val:
                print(f"Validation enabled | Val Samples: {validation_data[0].rows}")

        start_time = time.time()

        for epoch in range(epochs):
            epoch_loss = 0.0

            # Print if: verbose is True AND (First Epoch OR Last Epoch OR Multiple of log_freq)
            should_log = verbose and ((epoch + 1) % log_freq == 0 or epoch == 0 or (epoch + 1) == epochs)

            # Create a progress bar ONLY if we are logging this epoch
            if should_log:
                pbar = tqdm(batch_starts, desc=f"Epoch {epoch+1}/{epochs}", unit="batch")
            else:
                pbar = batch_starts  # Silent iterator

            # --- Training Loop ---
            for start in pbar:
                end = min(start + batch_size, n_samples)
                loss_val = self.train_on_batch(X.slice_rows(start, end), y.slice_rows(start, end))
                epoch_loss += loss_val

                if should_log:
                    pbar.set_postfix({'train_loss': f"{loss_val:.5f}"})

            # --- End of Epoch Calculations ---
            avg_train_loss = epoch_loss / len(batch_starts) if batch_starts else 0.0
            self.history['loss'].append(avg_train_loss)

            # --- Validation ---
            val_msg = ""
            if has_val:
                avg_val_loss = self.evaluate(*validation_data)
                self.history['val_loss'].append(avg_val_loss)
                val_msg = f" | Val Loss: {avg_val_loss:.6f}"

            if should_log:
                print(f"Epoch {epoch+1} finished. Train Loss: {avg_train_loss:.6f}{val_msg}")

        if verbose:
            print(f"Training Complete. Time: {time.time() - start_time:.2f}s")
        return self.history

    def predict(self, X):
        """
        Generates predictions for the input X.
        """
        return self.forward(X)

    def evaluate(self, X, y):
        """Computes the loss on (X, y) without training."""
        self._check_compiled()
        return self.loss_fn.forward(self.predict(X), y)

    def summary(self):
        """Prints a summary of the model architecture and returns the parameter count."""
        print("-" * 60)
        print(f"{'Layer (type)':<30} {'Params':<30}")
        print("=" * 60)

        total_params = 0
        for i, layer in enumerate(self.layers):
            params = layer.num_params()
            total_params += params
            print(f"{f'{i}: {layer.name}':<30} {params:<30}")

        print("=" * 60)
        print(f"Total Parameters: {total_params}")
        print("-" * 60)
        return total_params
