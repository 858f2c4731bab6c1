from html.parser import HTMLParser
import re


class MailBodyTextParser(HTMLParser):
    BLOCK_TAGS = ['p', 'div', 'br', 'tr', 'li', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'table']
    SKIPPED_TAGS = ['head', 'script', 'style', 'title']

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.output = []
        self.current_line = []
        self.skip_depth = 0 # inside <style>, <script>, ...
        self.in_cell = False

    def handle_starttag(self, tag, attrs):
        if tag in self.SKIPPED_TAGS:
            self.skip_depth += 1
        elif tag in self.BLOCK_TAGS:
            self._flush_line()
        elif tag in ['td', 'th']:
            # Cells of one row stay on one line
            if self.in_cell or self.current_line:
                self.current_line.append(' ')
            self.in_cell = True

    def handle_startendtag(self, tag, attrs):
        if tag == 'br':
            self._flush_line()

    def handle_endtag(self, tag):
        if tag in self.SKIPPED_TAGS:
            self.skip_depth = max(0, self.skip_depth - 1)
        elif tag in self.BLOCK_TAGS:
            self._flush_line()
        elif tag in ['td', 'th']:
            self.in_cell = False

    def handle_data(self, data):
        if self.skip_depth:
            return
        # Newlines inside markup are layout, not content
        text = data.replace('\r', ' ').replace('\n', ' ')
        if text:
            self.current_line.append(text)

    def _flush_line(self):
        if self.current_line:
            line = re.sub(r'[ \t\xa0]+', ' ', "".join(self.current_line)).strip()
            if line:
                self.output.append(line)
            self.current_line = []

    def get_text(self):
        self._flush_line()
        return "\n".join(self.output)


def convert_html_to_text(html_content: str) -> str:
    if not html_content:
        return ""
    parser = MailBodyTextParser()
    parser.feed(html_content)
    parser.close()
    return parser.get_text()
