""" Exceptions raised by rabbitcase. Connection-level errors are fatal to
    the producer or consumer that encounters them; serialization and handler
    errors are scoped to a single message.
"""

import builtins


class MessagingError(Exception):
    """ Base class for all rabbitcase errors. The *queue* and *delivery_tag*
        arguments are optional context, included in the string form of the
        exception when present.
    """

    def __init__(self, message, queue=None, delivery_tag=None):

        Exception.__init__(self, message)
        self.message = message
        self.queue = queue
        self.delivery_tag = delivery_tag


    def __str__(self):

        context = list()

        if self.queue is not None:
            context.append('queue=' + repr(self.queue))

        if self.delivery_tag is not None:
            context.append('delivery_tag=' + str(self.delivery_tag))

        if context:
            return self.message + ' (' + ', '.join(context) + ')'

        return self.message


# end of class MessagingError



class ConnectionError(MessagingError, builtins.ConnectionError):
    """ The broker could not be reached, or the connection to it was lost.
    """


class DeclarationConflictError(MessagingError):
    """ A queue declaration was refused because the queue already exists
        with different parameters, or is exclusive to another connection.
    """


class SerializationError(MessagingError):
    """ A record could not be encoded, or a payload could not be decoded.
    """


class HandlerError(MessagingError):
    """ A message handler raised an exception. The original exception is
        available as *error*, and is also chained as the cause.
    """

    def __init__(self, message, error, queue=None, delivery_tag=None):

        MessagingError.__init__(self, message, queue, delivery_tag)
        self.error = error
        self.__cause__ = error


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
