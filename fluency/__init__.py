"""
fluency-engine: adaptive-learning calibration for language objects.

Subpackages:
- core: shared domain models, component tables and text metrics
- composition: economic value and slot-filling task composer
- constraints: linguistic constraint graph and propagation
- calibration: Q-matrix weighting, response probability and theta updates
- evaluation: multi-layer response evaluation
- usage: usage-space tracking over standard contexts
- generalization: transfer and coverage estimation
- pipeline: end-to-end task generation and response processing
- db: SQLAlchemy persistence for objects, mastery and usage spaces
"""

__version__ = "1.0.0"
