""" Console formatting for records as they pass through the example
    programs: the record's fields, followed by where it was routed.
"""

import sys

import msgspec


colors = {
    'cyan': '\033[36m',
    'green': '\033[32m',
    'magenta': '\033[35m',
    'red': '\033[31m',
    'yellow': '\033[33m',
}

_reset = '\033[0m'
_rule = '-' * 48


class DisplayInfo:
    """ Fluent builder describing one record and its routing metadata::

            DisplayInfo.of(trade).exchange('').queue('q').display('yellow')

        Unset routing fields are omitted from the output.
    """

    def __init__(self, record):

        self.record = record
        self.fields = dict()


    @classmethod
    def of(cls, record):
        return cls(record)


    def exchange(self, name):
        self.fields['exchange'] = name or '(default)'
        return self


    def queue(self, name):
        self.fields['queue'] = name
        return self


    def routing_key(self, key):
        self.fields['routing key'] = key
        return self


    def virtual_host(self, vhost):
        self.fields['virtual host'] = vhost
        return self


    def delivery_tag(self, tag):
        self.fields['delivery tag'] = tag
        return self


    def render(self):
        """ Return the formatted description as a single string, without
            any color codes.
        """

        record = self.record

        if isinstance(record, msgspec.Struct):
            title = type(record).__name__
            values = msgspec.structs.asdict(record)
        elif isinstance(record, dict):
            title = 'Record'
            values = record
        else:
            title = type(record).__name__
            values = {'value': record}

        lines = [_rule, ' ' + title]

        width = max([len(str(key)) for key in values] + [0])
        for key, value in values.items():
            lines.append('   ' + str(key).ljust(width) + ' : ' + str(value))

        if self.fields:
            width = max(len(key) for key in self.fields)
            for key, value in self.fields.items():
                lines.append(' ' + key.ljust(width) + ' : ' + str(value))

        lines.append(_rule)
        return '\n'.join(lines)


    def display(self, color=None, stream=None):
        """ Print the description to *stream* (default stdout). Color codes
            are only emitted when the stream is a terminal.
        """

        if color is not None and color not in colors:
            raise ValueError('unknown display color: ' + repr(color))

        if stream is None:
            stream = sys.stdout

        text = self.render()

        if color is not None and stream.isatty():
            text = colors[color] + text + _reset

        print(text, file=stream)


# end of class DisplayInfo


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
