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

#
# pretrained.py
#
# Part of pandas_annotators
#
# Locating pretrained annotators in the local cache or on the Hugging Face hub.
#

import os
from typing import *

# Environment variable that overrides the location of the model cache
CACHE_DIR_ENV_VAR = "PANDAS_ANNOTATORS_CACHE"

_DEFAULT_CACHE_DIR = os.path.join("~", ".cache", "pandas_annotators")


def cache_dir() -> str:
    """
    :returns: Directory where pretrained annotators are cached; the value of
     the environment variable ``PANDAS_ANNOTATORS_CACHE`` if set, otherwise
     ``~/.cache/pandas_annotators``
    """
    return os.path.expanduser(os.environ.get(CACHE_DIR_ENV_VAR, _DEFAULT_CACHE_DIR))


def cached_model_path(name: str, lang: str) -> str:
    return os.path.join(cache_dir(), f"{name}_{lang}")


def resolve_pretrained(cls: Any, name: str, lang: str = "en",
                       remote_loc: Optional[str] = None) -> Any:
    """
    Find and load a pretrained annotator.

    :param cls: Annotator class; must provide `load()` and `load_saved_model()`
    :param name: Model name
    :param lang: Language code of the model
    :param remote_loc: Optional Hugging Face hub repository id to download the
     model from if it is not in the cache

    :returns: A ready-to-use annotator instance. An annotator saved at
     ``<cache>/<name>_<lang>`` is loaded directly; otherwise the repository
     `remote_loc` is downloaded into the cache and imported with
     `cls.load_saved_model()`.
    """
    local_path = cached_model_path(name, lang)
    if os.path.isdir(local_path):
        return cls.load(local_path)
    if remote_loc is None:
        raise FileNotFoundError(
            f"Pretrained model '{name}' for language '{lang}' not found at "
            f"{local_path}. Save an annotator there with write(), set "
            f"{CACHE_DIR_ENV_VAR} to another cache directory, or pass "
            f"remote_loc to download a model from the Hugging Face hub.")

    # noinspection PyPackageRequirements
    from huggingface_hub import snapshot_download
    folder = snapshot_download(repo_id=remote_loc,
                               cache_dir=os.path.join(cache_dir(), "hub"))
    return cls.load_saved_model(folder)


class HasPretrained:
    """
    Mixin that adds a `pretrained()` constructor to annotator classes with a
    `default_model_name` attribute.
    """

    default_model_name = None  # Type: Optional[str]

    @classmethod
    def pretrained(cls, name: Optional[str] = None, lang: str = "en",
                   remote_loc: Optional[str] = None):
        """
        :param name: Model name; defaults to the class's `default_model_name`
        :param lang: Language code of the model
        :param remote_loc: Optional Hugging Face hub repository id to download
         from when the model is not cached locally
        """
        if name is None:
            name = cls.default_model_name
        if name is None:
            raise ValueError(f"{cls.__name__} has no default pretrained model; "
                             f"please specify a model name")
        return resolve_pretrained(cls, name, lang, remote_loc)
