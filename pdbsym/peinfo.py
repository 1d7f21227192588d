from pefile import PE, OPTIONAL_HEADER_MAGIC_PE_PLUS


def get_pointer_size(filename = None, data = None):
    """
        Pointer width of the target of a PE image.
        Parameter:
            * (str) filename, path to input PE
            * (bytes) data, the PE image itself when there is no file
        Return :
            * (int) 8 for a PE32+ image, 4 otherwise
    """
    pe = PE(filename, data = data, fast_load = True)
    try:
        if pe.OPTIONAL_HEADER.Magic == OPTIONAL_HEADER_MAGIC_PE_PLUS:
            return 8
        return 4
    finally:
        pe.close()
