

class KestrelError(Exception):
    """ Base class for all Kestrel errors"""
    pass

class KestrelInvalidSymbol(KestrelError):
    """ Raised when a non-symbol is used where a symbol is required"""
    pass

class KestrelUnboundSymbol(KestrelError):
    """ Raised when a symbol is looked up before it is bound"""
    pass

class KestrelSyntaxError(KestrelError):
    """ Raised when the reader meets malformed source text"""

class KestrelTypeError(KestrelError):
    """ Raised when the types of arguments passed to a primitive are incorrect"""

class KestrelArithmeticError(KestrelError):
    """ Raised on division by zero"""

class KestrelOverflowError(KestrelError):
    """ Raised when an integer does not fit the immediate encoding"""

class KestrelBytecodeError(KestrelError):
    """ Raised when a bytecode stream violates its own invariants (bad opcode, bad operand)"""

class KestrelStackOverflow(KestrelError):
    """ Raised when a frame outgrows its operand stack or the frame stack is too deep"""
