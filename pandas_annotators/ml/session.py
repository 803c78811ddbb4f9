#
#  Copyright (c) 2020 IBM Corp.
#  Licensed under the Apache License, Version 2.0 (the "License");
#  you may not use this file except in compliance with the License.
#  You may obtain a copy of the License at
#
#  http://www.apache.org/licenses/LICENSE-2.0
#
#  Unless required by applicable law or agreed to in writing, software
#  distributed under the License is distributed on an "AS IS" BASIS,
#  WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#  See the License for the specific language governing permissions and
#  limitations under the License.
#

################################################################################
# session.py
#
"""
This module contains the inference sessions that annotators run their models
through. A session takes a dictionary of named numpy arrays ("feeds"), runs a
model, and returns the requested named outputs ("fetches") as numpy arrays.

The PyTorch-based sessions use the ``torch``, ``transformers`` and
``sentence_transformers`` libraries. Those libraries are imported inline so
that the rest of this library will function without them.
"""

import os
from typing import *

import numpy as np


class InferenceSession:
    """
    Base class for inference sessions.
    """

    def run(self, feeds: Mapping[str, np.ndarray],
            fetches: Sequence[str]) -> List[np.ndarray]:
        """
        :param feeds: Dictionary mapping input tensor names to values
        :param fetches: Names of the output tensors to return
        :returns: One numpy array per entry of `fetches`, in the same order
        """
        raise NotImplementedError()

    def runner(self) -> "Runner":
        return Runner(self)

    def save(self, path: str) -> None:
        """
        Write the model behind this session to the directory `path`.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support saving")

    @classmethod
    def load(cls, path: str, **kwargs) -> "InferenceSession":
        raise NotImplementedError(f"{cls.__name__} does not support loading")


class Runner:
    """
    Accumulates the feeds and fetches for one call to a session:

        outs = session.runner().feed("input_ids", ids).fetch("logits").run()
    """

    def __init__(self, session: InferenceSession):
        self._session = session
        self._feeds = {}  # Type: Dict[str, np.ndarray]
        self._fetches = []  # Type: List[str]

    def feed(self, name: str, value: np.ndarray) -> "Runner":
        self._feeds[name] = value
        return self

    def fetch(self, name: str) -> "Runner":
        self._fetches.append(name)
        return self

    def run(self) -> List[np.ndarray]:
        if len(self._fetches) == 0:
            raise ValueError("Nothing to fetch; call fetch() before run()")
        return self._session.run(self._feeds, self._fetches)


def _select_outputs(outputs: Mapping[str, Any],
                    fetches: Sequence[str]) -> List[np.ndarray]:
    missing = [name for name in fetches if name not in outputs]
    if len(missing) > 0:
        raise KeyError(f"Model produced no outputs named {missing}; "
                       f"available outputs are {list(outputs.keys())}")
    return [np.asarray(outputs[name]) for name in fetches]


class FunctionSession(InferenceSession):
    """
    Session around a plain Python callable. The callable receives the feeds as
    keyword arguments and returns a dictionary of named outputs.
    """

    def __init__(self, fn: Callable[..., Mapping[str, Any]]):
        self._fn = fn

    def run(self, feeds: Mapping[str, np.ndarray],
            fetches: Sequence[str]) -> List[np.ndarray]:
        return _select_outputs(self._fn(**feeds), fetches)


class TorchModelSession(InferenceSession):
    """
    Session around a PyTorch module, such as a model from the `transformers`
    library. Feeds are passed to the module's `forward()` as keyword arguments;
    fetches are looked up by key (or attribute) in whatever it returns.
    """

    # File name used for modules that don't have their own save format
    MODULE_FILE_NAME = "model.pt"

    def __init__(self, model: Any, device: str = "cpu",
                 num_threads: Optional[int] = None):
        """
        :param model: `torch.nn.Module` to run
        :param device: torch device on which to run the model
        :param num_threads: If set, number of threads torch may use for
         intra-op parallelism. Note that this setting is process-wide.
        """
        # Import torch inline so that the rest of this library will function without it.
        # noinspection PyPackageRequirements
        import torch
        if num_threads is not None:
            torch.set_num_threads(num_threads)
        self._device = device
        self._model = model.to(device)
        self._model.eval()

    @property
    def model(self) -> Any:
        return self._model

    def run(self, feeds: Mapping[str, np.ndarray],
            fetches: Sequence[str]) -> List[np.ndarray]:
        # noinspection PyPackageRequirements
        import torch
        inputs = {}
        for name, value in feeds.items():
            value = np.asarray(value)
            if value.dtype.kind in ("i", "u"):
                # Embedding lookups want int64 indices
                value = value.astype(np.int64)
            inputs[name] = torch.as_tensor(value).to(self._device)
        with torch.no_grad():
            outputs = self._model(**inputs)

        result = []
        for name in fetches:
            if isinstance(outputs, Mapping) and name in outputs:
                tensor = outputs[name]
            elif hasattr(outputs, name):
                tensor = getattr(outputs, name)
            elif isinstance(outputs, (tuple, list)) and name.isdigit() \
                    and int(name) < len(outputs):
                tensor = outputs[int(name)]
            else:
                raise KeyError(f"Model output of type {type(outputs)} has no "
                               f"field named '{name}'")
            result.append(tensor.detach().cpu().numpy())
        return result

    def save(self, path: str) -> None:
        # noinspection PyPackageRequirements
        import torch
        os.makedirs(path, exist_ok=True)
        if hasattr(self._model, "save_pretrained"):
            self._model.save_pretrained(path)
        else:
            torch.save(self._model, os.path.join(path, self.MODULE_FILE_NAME))

    @classmethod
    def load(cls, path: str, model_loader: Optional[Callable[[str], Any]] = None,
             device: str = "cpu", **kwargs) -> "TorchModelSession":
        """
        :param path: Directory previously written by :func:`save`, or any
         directory in the `transformers` `save_pretrained` format
        :param model_loader: Optional function that takes `path` and returns
         a module, for instance
         ``transformers.AutoModelForTokenClassification.from_pretrained``
        :param device: torch device on which to run the model
        """
        if model_loader is not None:
            model = model_loader(path)
        elif os.path.exists(os.path.join(path, cls.MODULE_FILE_NAME)):
            # noinspection PyPackageRequirements
            import torch
            model = torch.load(os.path.join(path, cls.MODULE_FILE_NAME),
                               map_location=device, weights_only=False)
        elif os.path.exists(os.path.join(path, "config.json")):
            # noinspection PyPackageRequirements
            import transformers
            model = transformers.AutoModel.from_pretrained(path)
        else:
            raise FileNotFoundError(f"No saved PyTorch model found in {path}")
        return cls(model, device=device, **kwargs)


class SentenceTransformerSession(InferenceSession):
    """
    Session around a `sentence_transformers.SentenceTransformer` encoder.

    The session takes a single feed holding a 1D array of strings and produces
    one output, "sentence_embedding", of shape ``[num_strings, dimension]``.
    """

    OUTPUT_NAME = "sentence_embedding"

    def __init__(self, model: Any, batch_size: int = 32):
        self._model = model
        self._batch_size = batch_size

    @property
    def model(self) -> Any:
        return self._model

    def run(self, feeds: Mapping[str, np.ndarray],
            fetches: Sequence[str]) -> List[np.ndarray]:
        if len(feeds) != 1:
            raise ValueError(f"Expected exactly one feed of input strings; "
                             f"got {list(feeds.keys())}")
        texts = [str(t) for t in next(iter(feeds.values()))]
        embeddings = self._model.encode(texts, batch_size=self._batch_size,
                                        convert_to_numpy=True,
                                        show_progress_bar=False)
        return _select_outputs(
            {self.OUTPUT_NAME: np.asarray(embeddings, dtype=np.float32)}, fetches)

    def save(self, path: str) -> None:
        os.makedirs(path, exist_ok=True)
        self._model.save(path)

    @classmethod
    def load(cls, path: str, device: str = "cpu",
             **kwargs) -> "SentenceTransformerSession":
        # noinspection PyPackageRequirements
        from sentence_transformers import SentenceTransformer
        return cls(SentenceTransformer(path, device=device), **kwargs)


# Session classes that annotators can restore from disk, by class name
SESSION_TYPES = {
    "TorchModelSession": TorchModelSession,
    "SentenceTransformerSession": SentenceTransformerSession,
}
