"""
Face Embedding Extraction using DeepFace

This module handles:
- One-time loading of the recognition model (FaceModel)
- Face detection and embedding generation (FaceEmbeddingExtractor)
"""
import os
import numpy as np
from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional
import logging

from deepface import DeepFace

from faceauth.config import (
    FACE_RECOGNITION_MODEL,
    FACE_DETECTOR_BACKEND,
    MODEL_HOME,
    REJECT_MULTIPLE_FACES
)
from faceauth.exceptions import (
    ExtractionError,
    ModelLoadError,
    MultipleFacesDetected,
    NoFaceDetected
)
from faceauth.utils import ImageDecoder, OpenCVImageDecoder

logger = logging.getLogger(__name__)


@contextmanager
def _weights_home(model_home: Optional[str]):
    """Point DeepFace at model_home while weights are being loaded."""
    # DEEPFACE_HOME is DeepFace's only weights-location setting; restored afterwards
    if model_home is None:
        yield
        return
    previous = os.environ.get("DEEPFACE_HOME")
    os.environ["DEEPFACE_HOME"] = str(model_home)
    try:
        yield
    finally:
        if previous is None:
            os.environ.pop("DEEPFACE_HOME", None)
        else:
            os.environ["DEEPFACE_HOME"] = previous


class FaceModel:
    """
    Handle to the loaded recognition model.

    Built once at startup and shared read-only by every extraction.
    """

    def __init__(
        self,
        model_name: str = FACE_RECOGNITION_MODEL,
        detector_backend: str = FACE_DETECTOR_BACKEND,
        model_home: Optional[str] = MODEL_HOME
    ):
        self.model_name = model_name
        self.detector_backend = detector_backend
        self.model_home = model_home
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> "FaceModel":
        """
        Load the recognition and detector weights and run a warm-up inference.

        build_model fills DeepFace's in-process model cache, which every later
        DeepFace.represent call reuses; nothing else needs to hold the models.

        Raises:
            ModelLoadError: weights directory missing or a model failed to build
        """
        if self.loaded:
            return self

        if self.model_home is not None and not Path(self.model_home).is_dir():
            raise ModelLoadError(f"Model directory not found: {self.model_home}")

        logger.info(f"Loading {self.model_name} model...")
        try:
            with _weights_home(self.model_home):
                DeepFace.build_model(self.model_name, task="facial_recognition")
                if self.detector_backend != "skip":
                    DeepFace.build_model(self.detector_backend, task="face_detector")
                # Warm up the model by running a dummy inference
                dummy_img = np.zeros((224, 224, 3), dtype=np.uint8)
                DeepFace.represent(
                    img_path=dummy_img,
                    model_name=self.model_name,
                    detector_backend="skip",
                    enforce_detection=False
                )
        except Exception as e:
            logger.error(f"Failed to load {self.model_name} model: {e}")
            raise ModelLoadError(f"Failed to load {self.model_name} model: {e}") from e

        self._loaded = True
        logger.info(f"{self.model_name} model loaded successfully")
        return self


class FaceEmbeddingExtractor:
    """
    Turns raw image bytes into a face embedding.

    The first detected face is used; images with several faces are only
    rejected when reject_multiple_faces is set.
    """

    def __init__(
        self,
        model: FaceModel,
        decoder: Optional[ImageDecoder] = None,
        reject_multiple_faces: bool = REJECT_MULTIPLE_FACES
    ):
        self.model = model
        self.decoder = decoder or OpenCVImageDecoder()
        self.reject_multiple_faces = reject_multiple_faces

    @property
    def loaded(self) -> bool:
        return self.model.loaded

    def load(self):
        self.model.load()

    def extract(self, image_bytes: bytes) -> List[float]:
        """
        Complete pipeline: bytes -> embedding.

        Raises:
            InvalidImage: bytes are not a decodable image
            NoFaceDetected: the detector found no face
            MultipleFacesDetected: more than one face and rejection is enabled
            ExtractionError: the model failed
        """
        if not self.model.loaded:
            raise ExtractionError("Face model is not loaded")

        img_array = self.decoder.decode(image_bytes)

        try:
            representations = DeepFace.represent(
                img_path=img_array,
                model_name=self.model.model_name,
                detector_backend=self.model.detector_backend,
                enforce_detection=True,
                align=True
            )
        except ValueError as e:
            if "Face could not be detected" in str(e):
                raise NoFaceDetected() from e
            logger.error(f"Embedding generation failed: {e}")
            raise ExtractionError() from e
        except Exception as e:
            logger.error(f"Embedding generation failed: {e}")
            raise ExtractionError() from e

        if not representations:
            raise NoFaceDetected()

        if len(representations) > 1:
            if self.reject_multiple_faces:
                raise MultipleFacesDetected()
            logger.info(f"{len(representations)} faces detected, using the first one")

        embedding = representations[0].get("embedding")
        if embedding is None:
            raise ExtractionError("Model returned no embedding")

        return [float(x) for x in embedding]
