"""Hand-authored supplier payloads in every supported wire format."""


LEGACY_DUMP = """
// dump of the partner OTA response
array(1) {
  ["OTA_VehLocSearchRS"]=>
  array(3) {
    ["attr"]=>
    array(1) {
      ["Version"]=>
      string(3) "1.0"
    }
    ["POS"]=>
    array(1) {
      ["RequestorID"]=>
      array(1) {
        ["ID"]=>
        string(8) "ACC-9911"
      }
    }
    ["VehMatchedLocs"]=>
    array(2) {
      [0]=>
      array(1) {
        ["VehMatchedLoc"]=>
        array(1) {
          ["LocationDetail"]=>
          array(2) {
            ["attr"]=>
            array(4) {
              ["Code"]=>
              string(6) "DXBA02"
              ["Name"]=>
              string(16) "Dubai Airport T1"
              ["Latitude"]=>
              string(9) "25.252778"
              ["Longitude"]=>
              string(9) "55.364444"
            }
            ["Address"]=>
            array(1) {
              ["CountryName"]=>
              array(1) {
                ["attr"]=>
                array(1) {
                  ["Code"]=>
                  string(2) "AE"
                }
              }
            }
          }
        }
      }
      [1]=>
      array(1) {
        ["VehMatchedLoc"]=>
        array(1) {
          ["LocationDetail"]=>
          array(2) {
            ["attr"]=>
            array(2) {
              ["Code"]=>
              string(6) "AUHC01"
              ["Name"]=>
              string(16) "Abu Dhabi Centre"
            }
            ["Address"]=>
            array(1) {
              ["CountryName"]=>
              array(1) {
                ["attr"]=>
                array(1) {
                  ["Code"]=>
                  string(2) "AE"
                }
              }
            }
          }
        }
      }
    }
  }
}
"""

LOCATIONS_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Locations>
  <Location>
    <unlocode>GBMAN</unlocode>
    <country>GB</country>
    <place>Manchester</place>
    <iataCode>MAN</iataCode>
  </Location>
  <Location unlocode="GBLON" country="GB" place="London"/>
  <Location>
    <place>Nowhere</place>
  </Location>
</Locations>
"""

BRANCHES_JSON = """[
  {
    "Branchcode": "BR001",
    "Name": "Dubai Airport",
    "NatoLocode": "AEDXB",
    "AtAirport": "true",
    "LocationType": "Airport",
    "CollectionType": "Counter",
    "EmailAddress": "dxb@example.com",
    "Telephone": {"attr": {"PhoneNumber": "+971 4 000 0000"}},
    "Latitude": "25.252778",
    "Longitude": "55.364444",
    "Address": {
      "AddressLine": {"value": "Terminal 1"},
      "CityName": {"value": "Dubai"},
      "PostalCode": {"value": "00000"},
      "CountryName": {"value": "United Arab Emirates", "attr": {"Code": "AE"}}
    }
  },
  {
    "Branchcode": "BR002",
    "Name": "Abu Dhabi Centre",
    "Address": {"CountryName": {"attr": {"Code": "AE"}}}
  }
]"""

AVAILABILITY_XML = """<?xml version="1.0" encoding="UTF-8"?>
<OTA_VehAvailRateRS xmlns="http://www.opentravel.org/OTA/2003/05" Version="1.0">
  <VehAvailRSCore>
    <VehVendorAvails>
      <VehVendorAvail>
        <VehAvails>
          <VehAvail>
            <VehAvailCore Status="Available">
              <Vehicle Code="CDMR">
                <VehMakeModel Name="VW Golf or similar" Code="CDMR"/>
                <PictureURL>https://img.example.com/golf.png</PictureURL>
              </Vehicle>
              <RentalRate>
                <VehicleCharges>
                  <VehicleCharge IncludedInRate="true" Description="Collision damage waiver"/>
                  <VehicleCharge IncludedInRate="false" Description="Young driver fee"/>
                </VehicleCharges>
              </RentalRate>
              <TotalCharge RateTotalAmount="245.50" CurrencyCode="EUR"/>
              <Reference Type="16" ID="OFF-001"/>
              <PricedEquips>
                <PricedEquip>
                  <Equipment EquipType="7">
                    <Description>Child seat</Description>
                  </Equipment>
                  <Charge Amount="30.00" CurrencyCode="EUR"/>
                </PricedEquip>
              </PricedEquips>
            </VehAvailCore>
          </VehAvail>
          <VehAvail>
            <VehAvailCore Status="OnRequest">
              <Vehicle Code="EDMR">
                <VehMakeModel Name="Ford Focus or similar"/>
              </Vehicle>
              <TotalCharge RateTotalAmount="310.00" CurrencyCode="EUR"/>
              <Reference Type="16" ID="OFF-002"/>
            </VehAvailCore>
          </VehAvail>
        </VehAvails>
      </VehVendorAvail>
    </VehVendorAvails>
  </VehAvailRSCore>
</OTA_VehAvailRateRS>
"""


def offers_json(price: str = "100.00") -> dict:
    return {
        "offers": [
            {
                "offerId": "A1",
                "vehicleClass": "CDMR",
                "makeModel": "VW Golf",
                "currency": "eur",
                "totalPrice": price,
                "status": "available",
            },
            {
                "offerId": "A2",
                "vehicleClass": "IDAR",
                "makeModel": "Audi A4",
                "currency": "EUR",
                "totalPrice": "180.00",
                "status": "sold out",
            },
        ]
    }
