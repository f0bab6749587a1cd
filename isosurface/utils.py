## @package utils
# Assertion and logging helpers shared by the isosurface modules


## Enables the debug messages printed by iso_debug
verbose = False


def set_verbose(enabled: bool):
    global verbose
    verbose = enabled


def iso_assert(expr: bool, log_str: str):
    assert expr, ">>>> [ISO]: " + log_str


def iso_log(log_str: str):
    print(">> [ISO]: {}".format(log_str))


def iso_debug(log_str: str):
    if verbose:
        iso_log(log_str)
