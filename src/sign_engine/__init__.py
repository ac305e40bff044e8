"""SignEngine - classical frame-to-symbol hand sign recognition."""

__version__ = "0.1.0"

from sign_engine.config import ConfigError, EngineConfig, Thresholds, PRESETS, get_preset
from sign_engine.segmentation import PixelClassifier, NoiseFilter
from sign_engine.blobs import Blob, BlobExtractor
from sign_engine.features import FeatureExtractor, FeatureSet, BoundingBox
from sign_engine.gestures import GestureRule, GestureRegistry
from sign_engine.classifier import Gesture, GestureClassifier
from sign_engine.stabilizer import TemporalStabilizer
from sign_engine.sequences import SequenceAccumulator, SymbolAccepted
from sign_engine.vocabulary import Vocabulary, VocabularyMatcher, MatchFound, MatchKind, Phrase
from sign_engine.pipeline import SignPipeline, DetectionSession, GestureUpdate, PipelineResult
from sign_engine.driver import FrameDriver
from sign_engine.profiler import PipelineProfiler
from sign_engine.metrics import MetricsCollector
