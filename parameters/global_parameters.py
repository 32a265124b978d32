# global_parameters.py


class GlobalParameters:
    def __init__(self, initial_params=None):
        """
        all parameters are defined with underscore, _, instead of spaces
        """
        # Use a dictionary to store all parameters
        self._params = {
            # Continuity order k of the faired surface; the Laplacian is
            # expanded to depth k + 1:
            #   0 – membrane (tangent plane discontinuities allowed at the border)
            #   1 – thin plate (G1 across the border)
            #   2 – minimum variation of curvature (G2 across the border)
            "continuity": 1,
            # Weight provider used to build the weighted Laplacian:
            #   "uniform", "cotangent", "scale_dependent".
            "weighting": "cotangent",
            # Direct solver used to factor the fairing system:
            #   "sparse_lu" – scipy SuperLU, "dense_lu" – LAPACK getrf.
            "linear_solver": "sparse_lu",
            # How to keep some vertices pinned when the whole mesh is selected:
            #   "decimate" – drop every n-th vertex of the sorted region.
            #   "extremal" – drop the vertices with min/max x, y, z.
            "whole_mesh_policy": "decimate",
            "removal_percent": 10.0,
            # Relative pivot threshold below which a factorization is
            # reported as singular.
            "pivot_tolerance": 1e-14,
        }
        # Load initial parameters if provided
        if initial_params:
            self.update(initial_params)

    def __getattr__(self, name):
        """Attribute access for parameters.

        Callers may read parameters as attributes
        (e.g. ``global_params.continuity``) while the canonical storage
        is the internal ``_params`` dict.
        """
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            return params[name]
        raise AttributeError(
            f"{type(self).__name__!s} object has no attribute {name!r}"
        )

    def __setattr__(self, name, value):
        """Attribute assignment for known parameter keys."""
        if name == "_params":
            object.__setattr__(self, name, value)
            return
        params = self.__dict__.get("_params")
        if params is not None and name in params:
            params[name] = value
            return
        object.__setattr__(self, name, value)

    def get(self, key, default=None):
        """Retrieve a parameter value, or return a default if not found."""
        return self._params.get(key, default)

    def set(self, key, value):
        """Set or update a parameter."""
        self._params[key] = value

    def update(self, params):
        """Update multiple parameters at once."""
        self._params.update(params)

    def __contains__(self, key):
        """Check if a parameter exists."""
        return key in self._params

    def __repr__(self):
        """String representation for debugging."""
        return f"GlobalParameters({self._params})"

    def to_dict(self):
        """Convert the parameters to a dictionary for serialization."""
        return self._params
