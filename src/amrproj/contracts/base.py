"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from amrproj.contracts.failure import ContractViolation


def require(condition: bool, message: str) -> None:
    """Enforce a stage contract.

    Called at stage boundaries to verify the preceding stage produced
    the guaranteed invariants. Fail-fast: no recovery, no fallback.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ContractViolation is raised.
    message : str
        Error message explaining the contract violation.

    Raises
    ------
    ContractViolation
        If condition is False.

    Examples
    --------
    >>> require("level" in df.columns, "Cell contract: missing 'level' column")
    """
    if not condition:
        raise ContractViolation(message)
