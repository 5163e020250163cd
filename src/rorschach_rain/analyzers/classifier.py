# analyzers/classifier.py
import logging
import math
import random
from typing import Dict, List, Optional, Tuple
from ..models import Blob, ClassificationMetrics, ClassificationResult, Viewport

# What a blob "looks like", by shape trait: (label, icon)
SHAPE_DICTIONARY: Dict[str, List[Tuple[str, str]]] = {
    'round': [
        ("MOON", "🌑"), ("COIN", "🪙"), ("SHIELD", "🛡️"), ("FACE", "🙂"),
        ("PLANET", "🪐"), ("EGG", "🥚"), ("TURTLE", "🐢"), ("BEETLE", "🪲"),
        ("BALLOON", "🎈"), ("PEARL", "🦪"), ("BUBBLE", "🫧"), ("MARBLE", "🔮"),
        ("YOLK", "🍳"), ("DOME", "🏛️"), ("IGLOO", "🛖"), ("JELLYFISH", "🪼"),
    ],
    'elongated': [
        ("SNAKE", "🐍"), ("RIVER", "🌊"), ("WORM", "🪱"), ("SWORD", "⚔️"),
        ("LIGHTNING", "⚡"), ("DNA", "🧬"), ("GIRAFFE", "🦒"), ("VINE", "🌿"),
        ("COMET", "☄️"), ("TOWER", "🗼"), ("CIGAR", "🚬"), ("FLUTE", "🪈"),
        ("ICICLE", "🧊"), ("NEEDLE", "🪡"), ("OBELISK", "🗿"), ("STREAM", "💧"),
    ],
    'spiky': [
        ("EXPLOSION", "💥"), ("MONSTER", "👹"), ("SPLASH", "💦"), ("TREE", "🌲"),
        ("DRAGON", "🐉"), ("CROWN", "👑"), ("CACTUS", "🌵"), ("STAR", "⭐"),
        ("DEMON", "👿"), ("SHARD", "💎"), ("THORN", "🌹"), ("SHURIKEN", "💠"),
        ("URCHIN", "🦔"), ("MACE", "🔨"), ("CRACK", "🏚️"),
    ],
    'tiny': [
        ("BUG", "🪲"), ("DOT", "⚫"), ("PEBBLE", "🪨"), ("SEED", "🌱"),
        ("ANT", "🐜"), ("BERRY", "🫐"), ("ATOM", "⚛️"), ("SPECK", "🌫️"),
        ("CRUMB", "🍪"), ("PIXEL", "👾"), ("FLEA", "🦗"), ("SPARK", "✨"),
        ("DROPLET", "💧"),
    ],
    'huge': [
        ("WHALE", "🐋"), ("MOUNTAIN", "⛰️"), ("TITAN", "🗿"), ("FOREST", "🌳"),
        ("CITY", "🏙️"), ("ELEPHANT", "🐘"), ("GALAXY", "🌌"), ("LEVIATHAN", "🦑"),
        ("KAIJU", "🦖"), ("ASTEROID", "☄️"), ("CONTINENT", "🗺️"), ("GLACIER", "❄️"),
        ("MONOLITH", "⬛"),
    ],
    'generic': [
        ("RABBIT", "🐰"), ("BUTTERFLY", "🦋"), ("GHOST", "👻"), ("SKULL", "💀"),
        ("BIRD", "🐦"), ("FISH", "🐟"), ("BAT", "🦇"), ("MASK", "🎭"),
        ("INKBLOT", "🎨"), ("SHADOW", "👤"), ("STAIN", "☕"), ("SILHOUETTE", "👥"),
        ("PHANTOM", "👻"), ("MIRAGE", "🏝️"), ("ECHO", "🔊"),
    ],
}

ADJECTIVES: Dict[str, List[str]] = {
    'tiny': ['TINY', 'LITTLE', 'SMALL', 'MICRO'],
    'huge': ['GIANT', 'MASSIVE', 'COLOSSAL', 'MEGA'],
    'elongated': ['LONG', 'STRETCHED', 'TALL', 'THIN'],
    'spiky': ['JAGGED', 'TWISTED', 'SHARP', 'SPIKY'],
    'round': ['ROUND', 'SMOOTH', 'SOFT', 'CURVED'],
    'generic': [''],
}

DEFAULT_NORMALIZED_MAGNITUDE = 0.5


class ShapeClassifier:
    """Scores a blob's geometry and names what it looks like"""

    # Decision thresholds, evaluated in order
    TINY_BELOW = 0.1
    HUGE_ABOVE = 0.6
    ELONGATED_ABOVE = 2.5
    SPIKY_ABOVE = 1.5

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()
        self.logger = logging.getLogger(__name__)

    def measure(self, blob: Blob, viewport: Optional[Viewport] = None) -> ClassificationMetrics:
        """Geometry metrics in coordinate-space units; deterministic"""
        box = blob.bounding_box
        lat_span = box.lat_span
        lng_span = box.lng_span

        # Sum of segment lengths, internal cuts included
        perimeter = sum(segment.length for segment in blob.segments)
        box_perimeter = 2 * (lat_span + lng_span)

        short_side = min(lat_span, lng_span)
        aspect_ratio = max(lat_span, lng_span) / short_side if short_side > 0 else math.inf
        magnitude = math.hypot(lat_span, lng_span)
        ruggedness = perimeter / box_perimeter if box_perimeter > 0 else 0.0

        normalized_magnitude = DEFAULT_NORMALIZED_MAGNITUDE
        if viewport is not None:
            view_diagonal = viewport.geo_bounds.diagonal
            if view_diagonal > 0:
                normalized_magnitude = magnitude / view_diagonal

        category = self.categorize(normalized_magnitude, aspect_ratio, ruggedness)

        return ClassificationMetrics(
            magnitude=magnitude,
            normalized_magnitude=normalized_magnitude,
            aspect_ratio=aspect_ratio,
            ruggedness=ruggedness,
            category=category,
        )

    def categorize(self, normalized_magnitude: float, aspect_ratio: float, ruggedness: float) -> str:
        if normalized_magnitude < self.TINY_BELOW:
            return 'tiny'
        if normalized_magnitude > self.HUGE_ABOVE:
            return 'huge'
        if aspect_ratio > self.ELONGATED_ABOVE:
            return 'elongated'
        if ruggedness > self.SPIKY_ABOVE:
            return 'spiky'
        return 'round'

    def pick(self, category: str, rng: Optional[random.Random] = None) -> Tuple[str, str, str]:
        """Random (label, icon, adjective) from the category's tables"""
        rng = rng or self.rng
        label, icon = rng.choice(SHAPE_DICTIONARY[category])
        adjective = rng.choice(ADJECTIVES[category])
        return label, icon, adjective

    def classify(self, blob: Blob, viewport: Optional[Viewport] = None,
                 rng: Optional[random.Random] = None) -> ClassificationResult:
        """Classify a blob relative to the current view"""
        metrics = self.measure(blob, viewport)
        label, icon, adjective = self.pick(metrics.category, rng)

        self.logger.info(
            f"Classified blob as {metrics.category} "
            f"(nmag={metrics.normalized_magnitude:.3f}, aspect={metrics.aspect_ratio:.2f}, "
            f"rugged={metrics.ruggedness:.2f}): {adjective} {label}")

        return ClassificationResult(label=label, icon=icon, adjective=adjective, metrics=metrics)

    def fallback(self, rng: Optional[random.Random] = None) -> ClassificationResult:
        """Out-of-band result used when there is no blob to measure"""
        label, icon, adjective = self.pick('generic', rng)
        return ClassificationResult(label=label, icon=icon, adjective=adjective)
