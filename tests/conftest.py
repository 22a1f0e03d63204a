"""Shared fixture text: a small GEF file and a small BRO CPT XML document."""
import matplotlib

matplotlib.use("Agg")

import pytest

GEF_TEXT = """#GEFID= 1, 1, 0
#FILEOWNER= Acme Geo
#COMPANYID= Acme Geo BV, 123456, 31
#PROJECTID= P-2024-01
#PROJECTNAME= Harbour quay
#TESTID= CPT01
#STARTDATE= 2024, 3, 7
#ZID= 31000, 1.25, 0.01
#XYID= 31000, 155000.00, 463000.00, 0.01, 0.01
#MEASUREMENTVAR= 1, 1000, mm2, nom. surface area cone tip
#COLUMN= 4
#COLUMNINFO= 1, m, penetration length, 1
#COLUMNINFO= 2, MPa, cone resistance, 2
#COLUMNINFO= 3, MPa, local friction, 3
#COLUMNINFO= 4, MPa, pore pressure u2, 6
#COLUMNVOID= 2, -9999.000000
#COLUMNVOID= 3, -9999.000000
#COLUMNSEPARATOR= ;
#RECORDSEPARATOR= !
#EOH=
0.00;0.50;0.010;0.001;!
0.10;0.60;0.012;0.002;!
0.20;-9999.000000;0.015;0.003;!
0.30;12.0;0.060;0.004;!
0.40;x;0.050;0.005;!
0.50;1.0
"""

VOID = "-999999"


def bro_block(length, depth, qc, fs, u2):
    """One 25-token measurement block; unlisted positions are void."""
    tokens = [VOID] * 25
    tokens[0] = str(length)
    tokens[1] = str(depth)
    tokens[3] = str(qc)
    tokens[18] = str(fs)
    tokens[22] = str(u2)
    return ",".join(tokens)


BRO_VALUES = ";".join([
    bro_block(0.02, 0.02, 1.2, 0.03, 0.01),
    bro_block(0.04, 0.04, VOID, 0.03, 0.01),
    bro_block(0.06, 0.06, 8.0, 0.08, "abc"),
    "0.08,0.08,1.0",
]) + ";"

_ACTIVE = {"penetrationLength", "depth", "coneResistance", "localFriction", "porePressureU2"}
_ALL_PARAMS = [
    "penetrationLength", "depth", "elapsedTime", "coneResistance", "correctedConeResistance",
    "netConeResistance", "magneticFieldStrengthX", "magneticFieldStrengthY",
    "magneticFieldStrengthZ", "magneticFieldStrengthTotal", "electricalConductivity",
    "inclinationEW", "inclinationNS", "inclinationX", "inclinationY", "inclinationResultant",
    "magneticInclination", "magneticDeclination", "localFriction", "poreRatio", "temperature",
    "porePressureU1", "porePressureU2", "porePressureU3", "frictionRatio",
]
BRO_PARAMETERS = "\n".join(
    f"<cptcommon:{p}>{'ja' if p in _ACTIVE else 'nee'}</cptcommon:{p}>" for p in _ALL_PARAMS
)


def bro_xml(values=BRO_VALUES, parameters=BRO_PARAMETERS, encoding_attrs='blockSeparator=";" tokenSeparator=","'):
    params_block = f"<cptcommon:parameters>{parameters}</cptcommon:parameters>" if parameters is not None else ""
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<dispatchDataResponse xmlns="http://www.broservices.nl/xsd/dsbro/1.0"
    xmlns:brocom="http://www.broservices.nl/xsd/brocommon/3.0"
    xmlns:cptcommon="http://www.broservices.nl/xsd/cptcommon/1.1"
    xmlns:gml="http://www.opengis.net/gml/3.2"
    xmlns:swe="http://www.opengis.net/swe/2.0">
  <dispatchDocument>
    <CPT_O>
      <brocom:broId>CPT000000012345</brocom:broId>
      <brocom:deliveryAccountableParty>27376655</brocom:deliveryAccountableParty>
      <brocom:qualityRegime>IMBRO</brocom:qualityRegime>
      <cptStandard>NEN5140</cptStandard>
      <standardizedLocation>
        <brocom:location><gml:pos>52.0907 5.1214</gml:pos></brocom:location>
      </standardizedLocation>
      <deliveredLocation>
        <cptcommon:location><gml:pos>136000.000 455000.000</gml:pos></cptcommon:location>
      </deliveredLocation>
      <deliveredVerticalPosition>
        <cptcommon:offset uom="m">-1.530</cptcommon:offset>
        <cptcommon:verticalDatum>NAP</cptcommon:verticalDatum>
      </deliveredVerticalPosition>
      <researchReportDate><brocom:date>2021-05-11</brocom:date></researchReportDate>
      <conePenetrometerSurvey>
        <cptcommon:trajectory>
          <cptcommon:predrilledDepth uom="m">0.50</cptcommon:predrilledDepth>
          <cptcommon:finalDepth uom="m">25.10</cptcommon:finalDepth>
        </cptcommon:trajectory>
        <cptcommon:qualityClass>klasse2</cptcommon:qualityClass>
        <cptcommon:cptMethod>elektrischContinu</cptcommon:cptMethod>
        {params_block}
        <cptcommon:conePenetrationTest>
          <cptcommon:cptResult>
            <swe:encoding><swe:TextEncoding decimalSeparator="." {encoding_attrs}/></swe:encoding>
            <cptcommon:values>{values}</cptcommon:values>
          </cptcommon:cptResult>
        </cptcommon:conePenetrationTest>
      </conePenetrometerSurvey>
    </CPT_O>
  </dispatchDocument>
</dispatchDataResponse>
"""


@pytest.fixture
def gef_text():
    return GEF_TEXT


@pytest.fixture
def bro_text():
    return bro_xml()


@pytest.fixture
def sounding_rows():
    """100 samples, 0.0-9.9 m: clay-like above 5 m, sand-like below."""
    rows = []
    for i in range(100):
        depth = round(i * 0.1, 2)
        qc = 1.0 if depth < 5 else 15.0
        fs = 0.03 if depth < 5 else 0.12
        rows.append({"length": depth, "depth": -depth, "qc": qc, "fs": fs, "rf": fs / qc * 100})
    return rows
