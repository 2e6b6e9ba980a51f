from dirserve.utils.htmpl import H, html, raw


def test_escaping():
	node = H.a("<b>", href='a"b&c', _="link", hidden=True, title=None)
	assert str(node) == '<a href="a&quot;b&amp;c" class="link" hidden>&lt;b&gt;</a>'


def test_raw():
	assert str(H.style(raw("li > a {}"))) == "<style>li > a {}</style>"


def test_document():
	doc = "".join(html(H.html(H.head(H.meta(charset="utf-8")), H.body(H.ul([H.li(1), H.li(2)])))))
	assert doc == (
		"<!DOCTYPE html>\n"
		'<html><head><meta charset="utf-8"></head>'
		"<body><ul><li>1</li><li>2</li></ul></body></html>"
	)


# EOF
