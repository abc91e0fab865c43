class ChecksumException( Exception ):
    pass

class DecryptionException( Exception ):
    pass

class TimeoutException( Exception ):
    pass

class DisconnectedException( Exception ):
    pass

class UnsupportedOperationException( Exception ):
    pass

class UnexpectedMessageException( Exception ):
    pass

class DataIncompleteError( Exception ):
    # Keeps whatever was transferred before the failure
    def __init__( self, message, start = 0, data = b'', requested = 0, reason = None ):
        Exception.__init__( self, message )
        self.start = start
        self.data = bytes( data )
        self.requested = requested
        self.reason = reason

    @property
    def blocks( self ):
        return len( self.data ) // 8

    @property
    def timedOut( self ):
        return isinstance( self.reason, TimeoutException )

class TagCommandException( Exception ):
    def __init__( self, message, code = 0x0F ):
        Exception.__init__( self, message )
        self.code = code

class Gen2Exception( Exception ):
    def __init__( self, message, code = -99 ):
        Exception.__init__( self, message )
        self.code = code

class OOPException( Exception ):
    pass
