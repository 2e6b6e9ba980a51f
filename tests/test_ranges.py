from dirserve.http.ranges import ByteRange, isRangeFresh, parseRange

LAST_MODIFIED = "Tue, 05 Mar 2024 07:08:09 GMT"


def test_byte_range():
	r = ByteRange(0, 9)
	assert r.length == 10
	assert r.contentRange(100) == "bytes 0-9/100"


def test_parse_range():
	assert parseRange(1000, "bytes=0-499") == [ByteRange(0, 499)]
	assert parseRange(1000, "bytes=500-") == [ByteRange(500, 999)]
	assert parseRange(1000, "bytes=-100") == [ByteRange(900, 999)]
	# The end is capped to the last byte
	assert parseRange(1000, "bytes=990-5000") == [ByteRange(990, 999)]
	assert parseRange(1000, "bytes=-5000") == []


def test_parse_range_merged():
	assert parseRange(1000, "bytes=0-1,2-3") == [ByteRange(0, 3)]
	assert parseRange(1000, "bytes=10-20,0-15") == [ByteRange(0, 20)]
	assert parseRange(1000, "bytes=0-10, 20-30") == [
		ByteRange(0, 10),
		ByteRange(20, 30),
	]


def test_parse_range_unsatisfiable():
	assert parseRange(1000, "bytes=1000-") == []
	assert parseRange(1000, "bytes=20-10") == []
	assert parseRange(0, "bytes=0-") == []


def test_parse_range_other_units():
	assert parseRange(1000, "items=0-10") is None
	assert parseRange(1000, "0-10") is None


def test_range_freshness():
	assert isRangeFresh(None, LAST_MODIFIED)
	assert isRangeFresh("", LAST_MODIFIED)
	assert isRangeFresh(LAST_MODIFIED, LAST_MODIFIED)
	assert isRangeFresh("Wed, 06 Mar 2024 00:00:00 GMT", LAST_MODIFIED)
	assert not isRangeFresh("Mon, 04 Mar 2024 00:00:00 GMT", LAST_MODIFIED)
	# No entity tags are generated, so none ever match
	assert not isRangeFresh('"abc"', LAST_MODIFIED)
	assert not isRangeFresh("not a date", LAST_MODIFIED)


# EOF
