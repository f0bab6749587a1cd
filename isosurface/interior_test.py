## @package interior_test
# Predicates that classify sampled scalar values as inside or outside of the
# region whose boundary is extracted.
#
# Every test can be called on a single value and classifies whole numpy arrays
# of samples at once through classify().
import numpy as np
from isosurface.utils import iso_assert


class InteriorTest:

    ## @param value a sampled scalar
    #  @detail Returns True if the value lies inside the region
    def __call__(self, value) -> bool:
        return bool(self.classify(np.asarray(value)))

    ## @param values a numpy array of sampled scalars
    #  @detail Returns a boolean array of the same shape, True for interior samples
    def classify(self, values: np.ndarray) -> np.ndarray:
        raise NotImplementedError


## Accepts values strictly above a threshold
class AcceptAbove(InteriorTest):

    def __init__(self, threshold):
        self.threshold = threshold

    def classify(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values) > self.threshold

    def __repr__(self):
        return "AcceptAbove({})".format(self.threshold)


## Accepts values exactly equal to a reference value, e.g. one label of a labeled volume
class AcceptExactly(InteriorTest):

    def __init__(self, value):
        self.value = value

    def classify(self, values: np.ndarray) -> np.ndarray:
        return np.asarray(values) == self.value

    def __repr__(self):
        return "AcceptExactly({})".format(self.value)


## Wraps an arbitrary callable value -> bool
class InteriorPredicate(InteriorTest):

    def __init__(self, predicate, vectorized=False):
        self.predicate = predicate
        self.vectorized = vectorized

    def __call__(self, value) -> bool:
        return bool(self.predicate(value))

    def classify(self, values: np.ndarray) -> np.ndarray:
        values = np.asarray(values)
        if self.vectorized:
            return np.asarray(self.predicate(values), dtype=bool).reshape(values.shape)
        return np.fromiter((bool(self.predicate(v)) for v in values.ravel()), dtype=bool,
                           count=values.size).reshape(values.shape)


## @param interior_test an InteriorTest or a plain callable value -> bool
#  @detail Returns an InteriorTest that classifies numpy arrays
def as_interior_test(interior_test) -> InteriorTest:
    if isinstance(interior_test, InteriorTest):
        return interior_test
    iso_assert(callable(interior_test), "Interior test must be callable.")
    return InteriorPredicate(interior_test)
