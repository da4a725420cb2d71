# itersolve/__init__.py

"""
itersolve - iterative solvers for linear systems.

Modules:
--------
- algebra   : Richardson, Jacobi, Gauss-Seidel, steepest descent and conjugate
              gradient solvers, matrix operators, preconditioners and
              convergence analysis
- common    : Logging utilities

Examples:
---------
>>> import numpy as np
>>> from itersolve.algebra import richardson, diagonally_dominant
>>> A = diagonally_dominant(40, rng=1)
>>> x, history = richardson(A, np.ones(40), P=np.diag(np.diag(A)), tol=1e-10)

File    : itersolve/__init__.py
Version : 0.1.0
License : MIT
"""

import importlib

# Package metadata
__version__         = "0.1.0"
__license__         = "MIT"

# List of available modules (not imported by default)
__all__             = ["algebra", "common"]

def get_module_description(module_name):
    """
    Get the description of a specific module in the itersolve package.
    """
    descriptions = {
        "algebra"   : "Iterative linear solvers, matrix operators, preconditioners and convergence analysis.",
        "common"    : "Console and file logging.",
    }
    return descriptions.get(module_name, "Module not found.")

def list_available_modules():
    """
    List all available modules in the itersolve package.
    """
    return __all__

# Lazy import subpackages on attribute access (PEP 562)
def __getattr__(name):
    if name in __all__:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

def __dir__():
    return sorted(list(globals().keys()) + __all__)
